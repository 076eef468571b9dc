from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from deltadoc import __version__
from deltadoc.core.db import get_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Проверка доступности сервиса и БД"""
    await db.execute(text("SELECT 1"))
    return {"status": "ok", "version": __version__}
