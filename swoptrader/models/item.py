from pydantic import Field
from typing import Optional, List
from datetime import datetime

from swoptrader.models.common import CamelModel


class ItemCreate(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    description: str
    category: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    images: List[str] = []
    owner_id: str = Field(min_length=1)
    is_available: bool = True


class ItemUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    images: Optional[List[str]] = None
    is_available: Optional[bool] = None


class ItemResponse(CamelModel):
    id: str
    name: str
    description: str
    category: str
    condition: str
    images: List[str] = []
    owner_id: str
    is_available: bool
    created_at: datetime
    updated_at: datetime
