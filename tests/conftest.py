"""
Test configuration and fixtures for the property photo sync API.
Provides database fixtures, cache fixtures, test data factories, and common test utilities.
"""

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.models.property import Property
from app.models.photo import Photo
from app.repositories.property import PropertyRepository
from app.repositories.photo import PhotoRepository
from app.repositories.store import AtomicStore
from app.services.property import PropertyService
from app.services.reconciler import PhotoReconciler
from app.utils.auth import create_access_token
from app.utils.cache import TTLCache
from app.utils.dependencies import get_ttl_cache
from app.utils.ownership import OwnershipCache


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


# Cache fixtures
@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock: FakeClock) -> TTLCache:
    """Isolated cache instance, never the process-wide one."""
    return TTLCache(clock=fake_clock)


@pytest.fixture
def ownership_cache(cache: TTLCache) -> OwnershipCache:
    return OwnershipCache(cache)


# Repository fixtures
@pytest.fixture
def property_repository(db_session: AsyncSession) -> PropertyRepository:
    """Create a property repository instance."""
    return PropertyRepository(db_session)


@pytest.fixture
def photo_repository(db_session: AsyncSession) -> PhotoRepository:
    """Create a photo repository instance."""
    return PhotoRepository(db_session)


@pytest.fixture
def atomic_store(db_session: AsyncSession) -> AtomicStore:
    return AtomicStore(db_session)


# Service fixtures
@pytest.fixture
def property_service(
    db_session: AsyncSession,
    cache: TTLCache,
    ownership_cache: OwnershipCache
) -> PropertyService:
    """Create a property service instance."""
    return PropertyService(db_session, cache=cache, ownership_cache=ownership_cache)


@pytest.fixture
def photo_reconciler(db_session: AsyncSession) -> PhotoReconciler:
    return PhotoReconciler(db_session)


# API client fixtures
@pytest.fixture
async def async_client(session_factory, cache: TTLCache) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database session and cache overrides."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ttl_cache] = lambda: cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(user_id: str, role: str = "user") -> Dict[str, str]:
    """Bearer header for a user."""
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


# Test data factories
class PropertyFactory:
    """Factory for creating test properties."""

    @staticmethod
    def create_property_data(
        title: str = "Test Property",
        address: str = "123 Test Lane",
        city: Optional[str] = "Testville",
        price: Any = "1000.00",
        property_type: Optional[str] = "apartment",
        images: Optional[List[str]] = None,
        **extra: Any
    ) -> Dict[str, Any]:
        """Create a raw property request body."""
        data = {
            "title": title,
            "address": address,
            "city": city,
            "price": price,
            "property_type": property_type,
            "bedrooms": 2,
            "images": images if images is not None else [],
        }
        data.update(extra)
        return data

    @staticmethod
    async def create_property(
        db_session: AsyncSession,
        owner_id: str = "owner_1",
        title: str = "Test Property",
        city: Optional[str] = "Testville",
        price: Decimal = Decimal("1000.00"),
        property_type: Optional[str] = "apartment",
        status: str = "active",
        images: Optional[List[str]] = None,
        created_at: Optional[datetime] = None
    ) -> Property:
        """Insert a property row directly, without photo rows."""
        property_obj = Property(
            owner_id=owner_id,
            title=title,
            address="1 Factory Road",
            city=city,
            price=price,
            property_type=property_type,
            status=status,
            images=list(images or []),
            created_at=created_at or BASE_TIME
        )
        db_session.add(property_obj)
        await db_session.commit()
        await db_session.refresh(property_obj)
        return property_obj


class PhotoFactory:
    """Factory for creating test photos."""

    @staticmethod
    async def create_photo(
        db_session: AsyncSession,
        url: str,
        property_id: Optional[uuid.UUID] = None,
        uploader_id: Optional[str] = "uploader_1",
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None
    ) -> Photo:
        """Insert a photo row; no property_id makes it an orphan."""
        photo = Photo(
            imagekit_file_id=f"file_{uuid.uuid4().hex[:8]}",
            url=url,
            thumbnail_url=url,
            category="property",
            uploader_id=uploader_id,
            property_id=property_id,
            photo_metadata=dict(metadata or {}),
            created_at=created_at or BASE_TIME
        )
        db_session.add(photo)
        await db_session.commit()
        await db_session.refresh(photo)
        return photo


class CountingProxy:
    """Wraps an object and counts awaited calls per method name."""

    def __init__(self, target: Any):
        self._target = target
        self.calls: Dict[str, int] = {}

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._target, name)
        if not callable(attr):
            return attr

        async def wrapper(*args, **kwargs):
            self.calls[name] = self.calls.get(name, 0) + 1
            return await attr(*args, **kwargs)

        return wrapper

    def count(self, name: str) -> int:
        return self.calls.get(name, 0)


def later(seconds: int) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)
