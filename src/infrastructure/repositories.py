"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Photos are loaded eagerly with their permit
(``lazy="selectin"``) so callers never trigger lazy IO.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import DriverModel, PermitModel
from src.domain.entities import empty_checklist
from src.domain.enums import PermitStatus


class PermitRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_pending(self, driver_id: int) -> PermitModel:
        """INSERT a fresh pending permit.  Raises IntegrityError on a race."""
        permit = PermitModel(
            driver_id=driver_id,
            status=PermitStatus.PENDING,
            checklist=empty_checklist(),
            order_routing_enabled=False,
            photos=[],
        )
        self.session.add(permit)
        await self.session.flush()
        return permit

    async def get_by_id(
        self, permit_id: int, for_update: bool = False
    ) -> Optional[PermitModel]:
        return await self.session.get(
            PermitModel, permit_id, with_for_update=for_update or None
        )

    async def get_pending_for_driver(self, driver_id: int) -> Optional[PermitModel]:
        result = await self.session.execute(
            select(PermitModel).where(
                PermitModel.driver_id == driver_id,
                PermitModel.status == PermitStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def get_current_for_driver(
        self, driver_id: int, now: datetime
    ) -> Optional[PermitModel]:
        result = await self.session.execute(
            select(PermitModel)
            .where(
                PermitModel.driver_id == driver_id,
                PermitModel.status == PermitStatus.ACTIVE,
                PermitModel.expires_at > now,
            )
            .order_by(PermitModel.expires_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_for_update(self, permit_id: int) -> Optional[PermitModel]:
        """SELECT ... FOR UPDATE, only while the permit is still active."""
        result = await self.session.execute(
            select(PermitModel)
            .where(
                PermitModel.id == permit_id,
                PermitModel.status == PermitStatus.ACTIVE,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def get_overdue_ids(self, now: datetime) -> list[int]:
        result = await self.session.execute(
            select(PermitModel.id)
            .where(
                PermitModel.status == PermitStatus.ACTIVE,
                PermitModel.expires_at < now,
            )
            .order_by(PermitModel.expires_at)
        )
        return list(result.scalars().all())

    async def get_unsynced_current_ids(self, now: datetime) -> list[int]:
        """Active, unexpired permits the gateway never confirmed."""
        result = await self.session.execute(
            select(PermitModel.id)
            .where(
                PermitModel.status == PermitStatus.ACTIVE,
                PermitModel.expires_at > now,
                PermitModel.order_routing_enabled.is_(False),
            )
            .order_by(PermitModel.id)
        )
        return list(result.scalars().all())

    async def get_history(self, driver_id: int, limit: int) -> list[PermitModel]:
        result = await self.session.execute(
            select(PermitModel)
            .where(PermitModel.driver_id == driver_id)
            .order_by(PermitModel.created_at.desc(), PermitModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_by_phone(self, phone: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.phone == phone)
        )
        return result.scalar_one_or_none()

    async def get_with_stale_orders(self, now: datetime) -> list[DriverModel]:
        """Drivers the gateway still lets take orders without a current permit."""
        current_permit = (
            select(PermitModel.id)
            .where(
                PermitModel.driver_id == DriverModel.id,
                PermitModel.status == PermitStatus.ACTIVE,
                PermitModel.expires_at > now,
            )
            .exists()
        )
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.orders_enabled.is_(True), ~current_permit)
            .order_by(DriverModel.id)
        )
        return list(result.scalars().all())

    async def get_with_missing_orders(self, now: datetime) -> list[DriverModel]:
        """Drivers with a synced current permit whose orders flag is off."""
        synced_permit = (
            select(PermitModel.id)
            .where(
                PermitModel.driver_id == DriverModel.id,
                PermitModel.status == PermitStatus.ACTIVE,
                PermitModel.expires_at > now,
                PermitModel.order_routing_enabled.is_(True),
            )
            .exists()
        )
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.orders_enabled.is_(False), synced_permit)
            .order_by(DriverModel.id)
        )
        return list(result.scalars().all())
