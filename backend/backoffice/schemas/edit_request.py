"""
Pydantic schemas for the edit-permission handshake.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from backoffice.models.edit_request import EditRequestStatus
from backoffice.schemas.base import CamelModel


class EditRequestCreate(CamelModel):
    reason: Optional[str] = Field(None, max_length=2000)


class EditRequestResolve(CamelModel):
    action: Literal["approved", "rejected"]


class EditRequestResponse(CamelModel):
    id: str
    booking_id: str
    requester_id: str
    owner_id: str
    status: EditRequestStatus
    reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
