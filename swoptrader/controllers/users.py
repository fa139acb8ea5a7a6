from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from swoptrader.database.connection import get_db
from swoptrader.database.models import User
from swoptrader.models.user import UserCreate, UserUpdate, UserResponse, LeaderboardSort
from swoptrader.services.users import fetch_user
from swoptrader.utils.pagination import build_pagination, page_offset
from swoptrader.utils.responses import envelope

router = APIRouter()

LEADERBOARD_COLUMNS = {
    "tradeScore": User.trade_score,
    "level": User.level,
    "carbonSaved": User.carbon_saved,
    "createdAt": User.created_at,
}


@router.get("")
async def list_users(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1),
        sort_by: LeaderboardSort = Query("tradeScore", alias="sortBy"),
        db: AsyncSession = Depends(get_db),
):
    """Leaderboard: users ordered by the chosen counter, highest first."""
    total = (await db.execute(select(func.count()).select_from(User))).scalar_one()
    stmt = (
        select(User)
        .order_by(LEADERBOARD_COLUMNS[sort_by].desc(), User.id)
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    result = await db.execute(stmt)
    users = [UserResponse.model_validate(user) for user in result.scalars().all()]
    return envelope(users, pagination=build_pagination(page, limit, total))


@router.get("/{user_id}")
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await fetch_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return envelope(UserResponse.model_validate(user))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(user_in: UserCreate, db: AsyncSession = Depends(get_db)):
    db_user = User(**user_in.model_dump(exclude_none=True))
    db.add(db_user)
    await db.commit()
    return envelope(UserResponse.model_validate(await fetch_user(db, db_user.id)))


@router.put("/{user_id}")
async def update_user(user_id: str, user_update: UserUpdate, db: AsyncSession = Depends(get_db)):
    db_user = await db.get(User, user_id)
    if not db_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    for field, value in user_update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(db_user, field, value)
    await db.commit()
    return envelope(UserResponse.model_validate(await fetch_user(db, user_id)))
