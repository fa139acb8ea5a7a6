from pydantic import Field
from typing import Optional, List
from datetime import datetime

from swoptrader.models.common import CamelModel


class TradedItem(CamelModel):
    item_id: str
    user_id: str
    item_name: Optional[str] = None
    item_image: Optional[str] = None


class TradeRating(CamelModel):
    rating: Optional[float] = None
    comment: Optional[str] = None
    rated_by: Optional[str] = None
    rated_at: Optional[datetime] = None


class TradeHistoryCreate(CamelModel):
    id: Optional[str] = None
    offer_id: str = Field(min_length=1)
    participant_ids: List[str] = []
    items_traded: List[TradedItem] = []
    completed_at: datetime
    meetup_id: Optional[str] = None
    carbon_saved: float = 0
    trade_score_earned: float = 0
    rating: Optional[TradeRating] = None


class TradeHistoryResponse(CamelModel):
    id: str
    offer_id: str
    participant_ids: List[str]
    items_traded: List[TradedItem] = []
    completed_at: datetime
    meetup_id: Optional[str] = None
    carbon_saved: float
    trade_score_earned: float
    rating: Optional[TradeRating] = None
