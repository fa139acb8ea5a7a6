from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from swoptrader.database.connection import get_db
from swoptrader.database.models import TradeHistory, TradeParticipant
from swoptrader.models.trade import TradeHistoryCreate, TradeHistoryResponse
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.get("/history")
async def get_trade_history(user_id: str = Query(..., alias="userId", min_length=1), db: AsyncSession = Depends(get_db)):
    stmt = (
        select(TradeHistory)
        .join(TradeParticipant)
        .where(TradeParticipant.user_id == user_id)
        .order_by(TradeHistory.completed_at.desc())
    )
    result = await db.execute(stmt)
    trades = [TradeHistoryResponse.model_validate(trade) for trade in result.scalars().unique().all()]
    return envelope(trades)


@router.post("/history", status_code=status.HTTP_201_CREATED)
async def create_trade_history(trade_in: TradeHistoryCreate, db: AsyncSession = Depends(get_db)):
    participant_ids = list(dict.fromkeys(trade_in.participant_ids))
    data = trade_in.model_dump(exclude={"participant_ids", "items_traded", "rating"}, exclude_none=True)
    db_trade = TradeHistory(
        **data,
        items_traded=[item.model_dump(mode="json", by_alias=True) for item in trade_in.items_traded],
        rating=trade_in.rating.model_dump(mode="json", by_alias=True) if trade_in.rating else None,
        participants=[TradeParticipant(user_id=user_id) for user_id in participant_ids],
    )
    db.add(db_trade)
    await db.commit()
    return envelope(TradeHistoryResponse.model_validate(db_trade))
