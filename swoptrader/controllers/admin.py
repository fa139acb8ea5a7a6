from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.connection import get_db
from swoptrader.services.maintenance import cleanup_orphaned_items
from swoptrader.utils.responses import envelope

router = APIRouter()


@router.delete("/cleanup-orphaned-items")
async def cleanup_orphaned_items_route(db: AsyncSession = Depends(get_db)):
    """Deletes items whose ownerId does not match any user."""
    deleted_count, orphaned_owner_ids = await cleanup_orphaned_items(db)
    if deleted_count == 0 and not orphaned_owner_ids:
        message = "No orphaned items found"
    else:
        message = f"Cleaned up {deleted_count} orphaned items"
    return envelope(
        {"deletedCount": deleted_count, "orphanedOwnerIds": orphaned_owner_ids},
        message=message,
    )
