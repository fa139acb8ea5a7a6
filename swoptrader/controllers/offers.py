from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from swoptrader.database.connection import get_db
from swoptrader.database.models import Offer
from swoptrader.models.offer import OfferCreate, OfferUpdate, OfferResponse, OfferStatus
from swoptrader.services.offer_notifications import OfferNotificationDispatcher, get_offer_dispatcher
from swoptrader.utils.pagination import build_pagination, page_offset
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.get("")
async def list_offers(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        offer_status: Optional[OfferStatus] = Query(None, alias="status"),
        user_id: Optional[str] = Query(None, alias="userId"),
        db: AsyncSession = Depends(get_db),
):
    """Offers newest first; `userId` matches either the sender or the recipient."""
    conditions = []
    if offer_status:
        conditions.append(Offer.status == offer_status.value)
    if user_id:
        conditions.append(or_(Offer.from_user_id == user_id, Offer.to_user_id == user_id))

    total = (await db.execute(select(func.count()).select_from(Offer).where(*conditions))).scalar_one()
    stmt = (
        select(Offer)
        .where(*conditions)
        .order_by(Offer.created_at.desc())
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    result = await db.execute(stmt)
    offers = [OfferResponse.model_validate(offer) for offer in result.scalars().all()]
    return envelope(offers, pagination=build_pagination(page, limit, total))


@router.get("/{offer_id}")
async def get_offer(offer_id: str, db: AsyncSession = Depends(get_db)):
    offer = await db.get(Offer, offer_id)
    if not offer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")
    return envelope(OfferResponse.model_validate(offer))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_offer(
        offer_in: OfferCreate,
        background_tasks: BackgroundTasks,
        db: AsyncSession = Depends(get_db),
        dispatcher: OfferNotificationDispatcher = Depends(get_offer_dispatcher),
):
    """
    Stores the offer and returns straight away. The recipient's push
    notification goes out afterwards as a background task and its outcome
    never changes this response.
    """
    data = offer_in.model_dump(mode="json", exclude_none=True)
    if offer_in.meetup is not None:
        data["meetup"] = offer_in.meetup.model_dump(mode="json", by_alias=True)
    db_offer = Offer(**data)
    db.add(db_offer)
    await db.commit()
    await db.refresh(db_offer)

    offer = OfferResponse.model_validate(db_offer)
    background_tasks.add_task(dispatcher.queue_offer_notification_for_offer, offer)
    return envelope(offer)


@router.put("/{offer_id}")
async def update_offer(offer_id: str, offer_update: OfferUpdate, db: AsyncSession = Depends(get_db)):
    db_offer = await db.get(Offer, offer_id)
    if not db_offer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")

    updates = offer_update.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if offer_update.meetup is not None:
        updates["meetup"] = offer_update.meetup.model_dump(mode="json", by_alias=True)
    for field, value in updates.items():
        setattr(db_offer, field, value)
    await db.commit()
    await db.refresh(db_offer)
    return envelope(OfferResponse.model_validate(db_offer))
