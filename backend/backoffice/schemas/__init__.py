from backoffice.schemas.booking import BookingCreate, BookingUpdate, BookingResponse, BookingDeleteResponse
from backoffice.schemas.edit_request import EditRequestCreate, EditRequestResolve, EditRequestResponse
from backoffice.schemas.notification import (
    NotificationResponse, MarkReadRequest, MarkReadResponse, UnreadCountResponse,
)
from backoffice.schemas.activity import ActivityResponse, ActivityDetails

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingResponse", "BookingDeleteResponse",
    "EditRequestCreate", "EditRequestResolve", "EditRequestResponse",
    "NotificationResponse", "MarkReadRequest", "MarkReadResponse", "UnreadCountResponse",
    "ActivityResponse", "ActivityDetails",
]
