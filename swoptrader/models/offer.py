from enum import Enum
from pydantic import Field
from typing import Optional, List
from datetime import datetime

from swoptrader.models.common import CamelModel

MAX_OFFER_MESSAGE_LENGTH = 1000


class OfferStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    COUNTERED = "COUNTERED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class MeetupStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MeetupLocation(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    type: Optional[str] = None


class Meetup(CamelModel):
    id: Optional[str] = None
    location: Optional[MeetupLocation] = None
    # Epoch milliseconds, as sent by the mobile client.
    scheduled_at: Optional[int] = None
    meetup_type: Optional[str] = None
    status: MeetupStatus = MeetupStatus.PENDING
    notes: Optional[str] = None
    completed_at: Optional[int] = None


class OfferCreate(CamelModel):
    id: Optional[str] = None
    from_user_id: str = Field(min_length=1)
    to_user_id: str = Field(min_length=1)
    requested_item_id: str = Field(min_length=1)
    offered_item_ids: List[str] = []
    status: OfferStatus = OfferStatus.PENDING
    message: Optional[str] = Field(default=None, max_length=MAX_OFFER_MESSAGE_LENGTH)
    cash_amount: Optional[float] = None
    meetup: Optional[Meetup] = None


class OfferUpdate(CamelModel):
    # Any status may be written; no transition graph is enforced.
    offered_item_ids: Optional[List[str]] = None
    status: Optional[OfferStatus] = None
    message: Optional[str] = Field(default=None, max_length=MAX_OFFER_MESSAGE_LENGTH)
    cash_amount: Optional[float] = None
    meetup: Optional[Meetup] = None


class OfferResponse(CamelModel):
    id: str
    from_user_id: str
    to_user_id: str
    requested_item_id: str
    offered_item_ids: List[str] = []
    status: OfferStatus
    message: Optional[str] = None
    cash_amount: Optional[float] = None
    meetup: Optional[Meetup] = None
    created_at: datetime
    updated_at: datetime
