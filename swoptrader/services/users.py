from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.models import User


async def fetch_user(db: AsyncSession, user_id: str) -> Optional[User]:
    """Loads a user with a fresh copy of the token set and device bindings."""
    stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalars().first()


async def fetch_user_name(db: AsyncSession, user_id: str) -> Optional[str]:
    result = await db.execute(select(User.name).where(User.id == user_id))
    return result.scalar_one_or_none()
