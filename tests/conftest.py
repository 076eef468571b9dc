import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from deltadoc.core.db import get_db
from deltadoc.core.security import create_access_token
from deltadoc.db.models import Base
from deltadoc.db.repositories import DocumentRepository
from deltadoc.domains.versions import Document, FileLockRegistry, VersionManager
from tests.fakes import InMemoryDocumentStore, InMemoryVersionStore


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
async def document(db_session: AsyncSession, owner_id: uuid.UUID) -> Document:
    """A persisted document with no history yet."""
    repository = DocumentRepository(db_session)
    return await repository.create(Document.create_document("Notes", owner_id))


@pytest.fixture
def manager(db_session: AsyncSession) -> VersionManager:
    """VersionManager on top of the SQLAlchemy repositories."""
    return VersionManager.from_session(db_session, locks=FileLockRegistry())


@pytest.fixture
def version_store() -> InMemoryVersionStore:
    return InMemoryVersionStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def memory_document(document_store: InMemoryDocumentStore, owner_id: uuid.UUID) -> Document:
    return document_store.add(Document.create_document("Scratch", owner_id))


@pytest.fixture
def memory_manager(version_store, document_store) -> VersionManager:
    """VersionManager on top of the in-memory stores."""
    return VersionManager(version_store, document_store, locks=FileLockRegistry())


@pytest.fixture
async def client(session_factory):
    from deltadoc.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(owner_id: uuid.UUID) -> dict:
    token = create_access_token({"sub": str(owner_id)})
    return {"Authorization": f"Bearer {token}"}
