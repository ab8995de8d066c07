from fastapi import APIRouter

from app.api.v1 import health, receipts, analytics, usage

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(receipts.router, prefix="/receipts", tags=["receipts"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
