# file: scripts/cleanup_orphaned_items.py
"""
Reconciliation job: removes items whose owner no longer exists.

Item.ownerId is not a foreign key, so user deletions can leave items behind.
Run periodically (cron) or by hand; the HTTP admin route does the same thing.
"""

import asyncio
import logging
import os
import sys

# Add the project root to the Python path so the swoptrader package imports when run as a script.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from swoptrader.database.connection import get_db_session
from swoptrader.services.maintenance import cleanup_orphaned_items

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("cleanup_orphaned_items")


async def main() -> int:
    async with get_db_session() as db:
        deleted_count, orphaned_owner_ids = await cleanup_orphaned_items(db)
    if orphaned_owner_ids:
        logger.info(f"Deleted {deleted_count} item(s); missing owners: {', '.join(orphaned_owner_ids)}")
    else:
        logger.info("No orphaned items found.")
    return deleted_count


if __name__ == "__main__":
    asyncio.run(main())
