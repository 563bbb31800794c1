"""
Seed script -- populates the database with demo drivers for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 demo drivers (one of them blocked)
  - 1 expired permit in the first driver's history
Prints a bearer token for every active driver.
"""

import asyncio
from datetime import timedelta

from src.api.security import create_access_token
from src.config import settings
from src.domain.clock import utcnow
from src.domain.entities import empty_checklist
from src.domain.enums import CHECKLIST_KEYS, PERMIT_DURATION, PermitStatus
from src.infrastructure.database import build_engine, build_session_factory
from src.infrastructure.models import DriverModel, PermitModel
from src.infrastructure.repositories import DriverRepository


DRIVERS = [
    {
        "phone": "+79991234567",
        "name": "Demo Driver",
        "car_model": "Hyundai Solaris",
        "car_number": "A123BV77",
        "is_active": True,
    },
    {
        "phone": "+79997654321",
        "name": "Second Driver",
        "car_model": "Kia Rio",
        "car_number": "K456MN99",
        "is_active": True,
    },
    {
        "phone": "+79990000000",
        "name": "Blocked Driver",
        "car_model": "Skoda Octavia",
        "car_number": "O789PR50",
        "is_active": False,
    },
]


async def seed(session_factory):
    async with session_factory() as session:
        repo = DriverRepository(session)
        # Check if already seeded
        if await repo.get_by_phone(DRIVERS[0]["phone"]) is not None:
            print("Database already seeded. Skipping.")
            return []

        # ── Drivers ───────────────────────────────────────────────────
        driver_models = []
        for d in DRIVERS:
            m = DriverModel(**d, orders_enabled=False)
            session.add(m)
            driver_models.append(m)
        await session.flush()
        print(f"  Created {len(driver_models)} drivers")

        # ── Permit history ────────────────────────────────────────────
        issued_at = utcnow() - timedelta(days=1)
        session.add(
            PermitModel(
                driver_id=driver_models[0].id,
                status=PermitStatus.EXPIRED,
                checklist={**empty_checklist(), **{k: True for k in CHECKLIST_KEYS}},
                issued_at=issued_at,
                expires_at=issued_at + PERMIT_DURATION,
                order_routing_enabled=False,
            )
        )
        await session.flush()
        print("  Created 1 expired permit")

        await session.commit()
        print("\nSeed complete!")
        return [d for d in driver_models if d.is_active]


async def main():
    print("Seeding database...")
    engine = build_engine(settings.database_url)
    drivers = await seed(build_session_factory(engine))
    for d in drivers:
        print(f"  {d.phone}: Bearer {create_access_token(d.id, settings)}")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
