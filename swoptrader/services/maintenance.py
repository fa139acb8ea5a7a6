import logging
from typing import List, Tuple

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.models import Item, User

logger = logging.getLogger(__name__)


async def find_orphaned_owner_ids(db: AsyncSession) -> List[str]:
    """Owner ids referenced by items that have no matching user."""
    stmt = (
        select(Item.owner_id)
        .distinct()
        .where(~select(User.id).where(User.id == Item.owner_id).exists())
        .order_by(Item.owner_id)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def cleanup_orphaned_items(db: AsyncSession) -> Tuple[int, List[str]]:
    """
    Physically deletes items whose owner no longer exists.
    Returns (deleted item count, orphaned owner ids).
    """
    orphaned_owner_ids = await find_orphaned_owner_ids(db)
    if not orphaned_owner_ids:
        return 0, []

    result = await db.execute(delete(Item).where(Item.owner_id.in_(orphaned_owner_ids)))
    await db.commit()
    deleted_count = result.rowcount or 0
    logger.info(f"Removed {deleted_count} orphaned item(s) for {len(orphaned_owner_ids)} missing owner(s).")
    return deleted_count, orphaned_owner_ids
