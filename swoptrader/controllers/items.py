from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from swoptrader.database.connection import get_db
from swoptrader.database.models import Item
from swoptrader.models.item import ItemCreate, ItemUpdate, ItemResponse
from swoptrader.utils.pagination import build_pagination, page_offset
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.get("")
async def list_items(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        category: Optional[str] = None,
        search: Optional[str] = None,
        owner_id: Optional[str] = Query(None, alias="ownerId"),
        db: AsyncSession = Depends(get_db),
):
    """
    Available items, newest first. `search` matches name or description,
    case-insensitively; all filters are combined with AND.
    """
    conditions = [Item.is_available.is_(True)]
    if category:
        conditions.append(Item.category == category)
    if search:
        conditions.append(or_(
            Item.name.icontains(search, autoescape=True),
            Item.description.icontains(search, autoescape=True),
        ))
    if owner_id:
        conditions.append(Item.owner_id == owner_id)

    total = (await db.execute(select(func.count()).select_from(Item).where(*conditions))).scalar_one()
    stmt = (
        select(Item)
        .where(*conditions)
        .order_by(Item.created_at.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    result = await db.execute(stmt)
    items = [ItemResponse.model_validate(item) for item in result.scalars().all()]
    return envelope(items, pagination=build_pagination(page, limit, total))


@router.get("/{item_id}")
async def get_item(item_id: str, db: AsyncSession = Depends(get_db)):
    item = await db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return envelope(ItemResponse.model_validate(item))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(item_in: ItemCreate, db: AsyncSession = Depends(get_db)):
    db_item = Item(**item_in.model_dump(exclude_none=True))
    db.add(db_item)
    await db.commit()
    await db.refresh(db_item)
    return envelope(ItemResponse.model_validate(db_item))


@router.put("/{item_id}")
async def update_item(item_id: str, item_update: ItemUpdate, db: AsyncSession = Depends(get_db)):
    db_item = await db.get(Item, item_id)
    if not db_item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    for field, value in item_update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(db_item, field, value)
    await db.commit()
    await db.refresh(db_item)
    return envelope(ItemResponse.model_validate(db_item))


@router.delete("/{item_id}")
async def delete_item(item_id: str, db: AsyncSession = Depends(get_db)):
    """Soft delete: the item stays stored but drops out of listings."""
    db_item = await db.get(Item, item_id)
    if not db_item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    db_item.is_available = False
    await db.commit()
    await db.refresh(db_item)
    return envelope(ItemResponse.model_validate(db_item))
