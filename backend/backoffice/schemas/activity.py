"""
Booking activity schemas.

`details` is a tagged union keyed by `kind`, one shape per action, so the
audit trail stays readable without a fixed column per action.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from backoffice.models.activity import ActivityAction
from backoffice.schemas.base import CamelModel


class CreateDetails(CamelModel):
    kind: Literal["create"] = "create"
    fields: dict[str, Any] = Field(default_factory=dict)


class UpdateDetails(CamelModel):
    kind: Literal["update"] = "update"
    changes: dict[str, Any] = Field(default_factory=dict)


class DeleteDetails(CamelModel):
    kind: Literal["delete"] = "delete"
    customer_name: Optional[str] = None


class RequestEditDetails(CamelModel):
    kind: Literal["request_edit"] = "request_edit"
    request_id: str
    reason: Optional[str] = None


class ResolveEditDetails(CamelModel):
    kind: Literal["approve_edit", "reject_edit"]
    request_id: str
    requester_id: str


ActivityDetails = Annotated[
    Union[CreateDetails, UpdateDetails, DeleteDetails, RequestEditDetails, ResolveEditDetails],
    Field(discriminator="kind"),
]

activity_details_adapter = TypeAdapter(ActivityDetails)


class ActivityResponse(CamelModel):
    id: int
    booking_id: str
    user_id: str
    action: ActivityAction
    details: Optional[dict[str, Any]] = None
    created_at: datetime
