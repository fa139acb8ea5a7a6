from pydantic import Field
from typing import Optional, List

from swoptrader.models.common import CamelModel


class TokenRegistrationRequest(CamelModel):
    user_id: str = Field(min_length=1)
    token: str = Field(min_length=1)
    device_id: Optional[str] = None


class OfferNotificationRequest(CamelModel):
    offer_id: str = Field(min_length=1)
    recipient_user_id: str = Field(min_length=1)
    sender_user_id: str = Field(min_length=1)
    sender_name: str = Field(min_length=1)
    item_name: Optional[str] = None
    message: Optional[str] = None


class DispatchResult(CamelModel):
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: List[str] = []


class DispatchSkipped(CamelModel):
    skipped: bool = True
    reason: str = "no_tokens"
