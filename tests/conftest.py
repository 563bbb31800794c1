"""
Shared test fixtures.

Uses a throwaway SQLite file database (via aiosqlite) per test so tests
run without Docker / PostgreSQL / Redis.  The production models are used
as-is: the partial unique index on pending permits is emitted for SQLite
too.  The two external gateways are replaced by in-memory fakes.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import Settings
from src.domain.enums import CHECKLIST_KEYS, PHOTO_SLOTS
from src.domain.errors import UpstreamFailure
from src.domain.validation import UploadPolicy
from src.infrastructure.database import Base, build_engine, build_session_factory
from src.infrastructure.models import DriverModel
from src.infrastructure.object_store import StoredObject
from src.infrastructure.order_routing import GatewayResult
from src.services.permit_engine import PermitEngine, PhotoUpload

MAX_UPLOAD_BYTES = 1024


# ── Fakes ─────────────────────────────────────────────────────────────


class FakeOrderRouting:
    """Records every call; flip ``fail`` to simulate an outage."""

    def __init__(self):
        self.fail = False
        self.remote_enabled: dict[int, bool] = {}
        self.calls: list[tuple[str, int]] = []

    async def enable_orders(self, driver_ref):
        self.calls.append(("enable", driver_ref))
        if self.fail:
            return GatewayResult(success=False, error="dispatch unavailable")
        self.remote_enabled[driver_ref] = True
        return GatewayResult(success=True, orders_enabled=True)

    async def disable_orders(self, driver_ref):
        self.calls.append(("disable", driver_ref))
        if self.fail:
            return GatewayResult(success=False, error="dispatch unavailable")
        self.remote_enabled[driver_ref] = False
        return GatewayResult(success=True, orders_enabled=False)

    async def get_status(self, driver_ref):
        self.calls.append(("status", driver_ref))
        if self.fail:
            return GatewayResult(success=False, error="dispatch unavailable")
        return GatewayResult(
            success=True, orders_enabled=self.remote_enabled.get(driver_ref, False)
        )


class FakeObjectStore:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.failing_slots: set[str] = set()
        self._counter = 0

    async def upload(self, data, original_name, mime_type, slot, driver_ref):
        if slot in self.failing_slots:
            raise UpstreamFailure(f"Photo upload failed for {slot}")
        self._counter += 1
        key = f"{driver_ref}/{slot}/{self._counter}.jpg"
        self.objects[key] = data
        return StoredObject(reference=key, url=f"https://cdn.test/{key}")

    async def delete(self, reference):
        self.deleted.append(reference)
        return self.objects.pop(reference, None) is not None


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# ── Helpers ───────────────────────────────────────────────────────────


def jpeg(size: int = 100, name: str = "photo.jpg") -> PhotoUpload:
    return PhotoUpload(data=b"\xff" * size, original_name=name, mime_type="image/jpeg")


def all_photos() -> dict[str, PhotoUpload]:
    return {slot.value: jpeg(name=f"{slot.value}.jpg") for slot in PHOTO_SLOTS}


def full_checklist() -> dict[str, bool]:
    return {key: True for key in CHECKLIST_KEYS}


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'permits.db'}",
        jwt_secret="test-secret",
        max_upload_bytes=MAX_UPLOAD_BYTES,
        order_routing_url="https://dispatch.test/api/v1",
    )


@pytest_asyncio.fixture
async def session_factory(
    test_settings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, yield a session factory, then drop everything."""
    engine = build_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def driver(session_factory) -> DriverModel:
    async with session_factory() as session:
        d = DriverModel(
            phone="+79991234567",
            name="Demo Driver",
            car_model="Hyundai Solaris",
            car_number="A123BV77",
            is_active=True,
        )
        session.add(d)
        await session.commit()
        return d


@pytest.fixture
def order_routing() -> FakeOrderRouting:
    return FakeOrderRouting()


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine(session_factory, order_routing, object_store, clock) -> PermitEngine:
    return PermitEngine(
        session_factory,
        order_routing,
        object_store,
        UploadPolicy(max_bytes=MAX_UPLOAD_BYTES),
        clock=clock,
    )
