from backoffice.models.booking import Booking, BookingEditor, BookingStatus, BookingType, PaymentStatus
from backoffice.models.edit_request import BookingEditRequest, EditRequestStatus
from backoffice.models.notification import Notification, NotificationType
from backoffice.models.activity import ActivityAction, BookingActivity

__all__ = [
    "Booking", "BookingEditor", "BookingStatus", "BookingType", "PaymentStatus",
    "BookingEditRequest", "EditRequestStatus",
    "Notification", "NotificationType",
    "ActivityAction", "BookingActivity",
]
