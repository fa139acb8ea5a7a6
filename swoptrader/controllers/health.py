from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from swoptrader.database.connection import get_db, ping

router = APIRouter()


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    connected = await ping(db)
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "Connected" if connected else "Disconnected",
        "message": "SwopTrader API is running!",
    }


@router.get("/test")
async def test_endpoint():
    return {"message": "API is working!", "timestamp": datetime.now(timezone.utc).isoformat()}
