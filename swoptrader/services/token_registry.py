"""
Per-user push token set.

The flat set (PushToken rows) only shrinks through delivery-failure pruning, so
it keeps tokens a device rotated away from until the provider rejects them.
Device bindings (UserDevice rows) always hold the latest token per device.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.models import User, PushToken, UserDevice
from swoptrader.services.users import fetch_user

logger = logging.getLogger(__name__)


async def register_token(
        db: AsyncSession,
        user_id: str,
        token: str,
        device_id: Optional[str] = None,
) -> Optional[User]:
    """
    Adds a token to the user's set (no-op if already present) and, when a
    device id is given, points that device at the new token.
    Returns the refreshed user, or None if the user does not exist.
    """
    user = await db.get(User, user_id)
    if user is None:
        return None

    if device_id:
        stmt = select(UserDevice).where(UserDevice.user_id == user_id, UserDevice.device_id == device_id)
        result = await db.execute(stmt)
        device = result.scalars().first()
        if device is None:
            db.add(UserDevice(user_id=user_id, device_id=device_id, token=token))
        else:
            device.token = token

    stmt = select(PushToken.id).where(PushToken.user_id == user_id, PushToken.token == token)
    result = await db.execute(stmt)
    if result.scalar_one_or_none() is None:
        try:
            # Savepoint: losing the insert race must not undo the device binding.
            async with db.begin_nested():
                db.add(PushToken(user_id=user_id, token=token))
        except IntegrityError:
            logger.info(f"Token for user {user_id} was added by a concurrent registration.")

    try:
        await db.commit()
    except IntegrityError:
        # A concurrent registration bound the same device first.
        await db.rollback()
        logger.info(f"Device {device_id} for user {user_id} was bound by a concurrent registration; keeping stored value.")

    return await fetch_user(db, user_id)


async def get_tokens(db: AsyncSession, user_id: str) -> List[str]:
    stmt = select(PushToken.token).where(PushToken.user_id == user_id).order_by(PushToken.id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def remove_tokens(db: AsyncSession, user_id: str, tokens: Iterable[str]) -> int:
    """
    Subtracts tokens from the user's set and drops device bindings that point
    at them. Unknown users and absent tokens are not an error.
    """
    tokens = list(tokens)
    if not tokens:
        return 0

    result = await db.execute(
        delete(PushToken).where(PushToken.user_id == user_id, PushToken.token.in_(tokens))
    )
    await db.execute(
        delete(UserDevice).where(UserDevice.user_id == user_id, UserDevice.token.in_(tokens))
    )
    await db.commit()
    return result.rowcount or 0
