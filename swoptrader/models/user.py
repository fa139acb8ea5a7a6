from pydantic import EmailStr, field_validator
from typing import Literal, Optional, Dict, List
from datetime import datetime

from swoptrader.models.common import CamelModel


class Location(CamelModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None


class UserCreate(CamelModel):
    id: Optional[str] = None
    name: str
    email: EmailStr
    profile_image_url: Optional[str] = None
    location: Optional[Location] = None
    trade_score: float = 0
    level: int = 1
    carbon_saved: float = 0

    @field_validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    @field_validator('email')
    def normalize_email(cls, v):
        return v.lower()


class UserUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    profile_image_url: Optional[str] = None
    location: Optional[Location] = None
    trade_score: Optional[float] = None
    level: Optional[int] = None
    carbon_saved: Optional[float] = None
    last_active_at: Optional[datetime] = None

    @field_validator('email')
    def normalize_email(cls, v):
        return v.lower() if v is not None else v


class UserResponse(CamelModel):
    id: str
    name: str
    email: str
    profile_image_url: Optional[str] = None
    location: Optional[Location] = None
    trade_score: float
    level: int
    carbon_saved: float
    fcm_tokens: List[str] = []
    device_tokens: Dict[str, str] = {}
    last_active_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


LeaderboardSort = Literal["tradeScore", "level", "carbonSaved", "createdAt"]
