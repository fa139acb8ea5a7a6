from enum import Enum
from pydantic import Field
from typing import Optional, List
from datetime import datetime

from swoptrader.models.common import CamelModel


class MessageType(str, Enum):
    TEXT = "TEXT"
    IMAGE = "IMAGE"
    OFFER = "OFFER"
    MEETUP = "MEETUP"


class ChatCreate(CamelModel):
    id: Optional[str] = None
    participant_ids: List[str] = Field(min_length=1)
    offer_id: Optional[str] = None
    item_id: Optional[str] = None
    item_name: Optional[str] = None


class ChatResponse(CamelModel):
    id: str
    participant_ids: List[str]
    offer_id: Optional[str] = None
    item_id: Optional[str] = None
    item_name: Optional[str] = None
    last_message_at: datetime
    created_at: datetime
    is_active: bool


class ChatMessageCreate(CamelModel):
    id: Optional[str] = None
    trade_id: Optional[str] = None
    sender_id: str = Field(min_length=1)
    receiver_id: Optional[str] = None
    message: str = Field(min_length=1)
    type: MessageType = MessageType.TEXT
    timestamp: Optional[datetime] = None


class ChatMessageResponse(CamelModel):
    id: str
    chat_id: str
    trade_id: Optional[str] = None
    sender_id: str
    receiver_id: Optional[str] = None
    message: str
    type: MessageType
    timestamp: datetime
    is_read: bool
