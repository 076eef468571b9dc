from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from deltadoc.core.config import settings

# Асинхронный движок
engine = create_async_engine(settings.database_url, future=True, echo=settings.sql_echo)

# Сессии
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

# Функция для dependency injection в FastAPI
async def get_db():
    async with SessionLocal() as session:
        yield session
