"""Health check endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from app.core.dependencies import DbSession

router = APIRouter()


@router.get("/health")
async def health_check(db: DbSession):
    """Check that the API and its database are reachable."""
    await db.execute(text("SELECT 1"))
    return {"status": "healthy", "message": "MedEcare Auth API is running"}
