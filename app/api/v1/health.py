import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from app.api.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Check if service is ready (database connection)."""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return {"status": "not_ready", "database": "disconnected", "error": str(e)}
    return {"status": "ready", "database": "connected"}
