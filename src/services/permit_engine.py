"""
Permit Lifecycle Engine
=======================

Owns the permit state machine and coordinates the two external
collaborators:

* **Order-routing gateway** -- told to enable orders when a permit
  becomes active and to disable them when it expires.
* **Object store gateway** -- holds the photo bytes.

Consistency rules
-----------------
* Every operation is its own unit of work and commits before returning.
* The local transition is the source of truth.  It is committed *before*
  the gateway is called; a failed gateway call is logged, reported in the
  result and left for ``reconcile_order_routing`` to retry.  It is never
  rolled back.
* Expiring a permit leaves orders on when the driver already holds a
  newer current permit.
* ``get_or_create_pending_permit`` relies on the partial unique index
  ``(driver_id) WHERE status = 'pending'``: the losing racer's INSERT
  fails, it rolls back and reads the winner's row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.clock import Clock, as_utc, utcnow
from src.domain.entities import (
    Readiness,
    activate_permit,
    expire_permit,
    merge_checklist,
    normalize_checklist,
    readiness_of,
)
from src.domain.enums import PermitStatus, PhotoSlot
from src.domain.errors import (
    InvalidState,
    NotFound,
    NotReady,
    PermitError,
    UpstreamFailure,
    ValidationError,
)
from src.domain.validation import UploadPolicy
from src.infrastructure.models import DriverModel, PermitModel, PhotoModel
from src.infrastructure.object_store import ObjectStoreGateway
from src.infrastructure.order_routing import GatewayResult, OrderRoutingGateway
from src.infrastructure.repositories import DriverRepository, PermitRepository

logger = logging.getLogger(__name__)


# ── Inputs / results ──────────────────────────────────────────────────


@dataclass(frozen=True)
class PhotoUpload:
    data: bytes
    original_name: str
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class SlotUploadResult:
    slot: str
    success: bool
    photo: Optional[PhotoModel] = None
    error: Optional[PermitError] = None
    replaced: bool = False


@dataclass
class UploadOutcome:
    results: list[SlotUploadResult] = field(default_factory=list)

    @property
    def saved_photos(self) -> list[PhotoModel]:
        return [r.photo for r in self.results if r.photo is not None]


@dataclass
class SubmitResult:
    permit: PermitModel
    order_routing: GatewayResult


@dataclass
class SweepReport:
    expired: int = 0
    upstream_failures: list[int] = field(default_factory=list)  # permit ids


@dataclass
class ReconcileReport:
    enabled: int = 0
    disabled: int = 0
    upstream_failures: int = 0


@dataclass
class DriverStatus:
    orders_enabled: bool
    last_checked: Optional[datetime]
    synced: bool
    has_active_permit: bool
    error: Optional[str] = None


# ── Engine ────────────────────────────────────────────────────────────


class PermitEngine:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        order_routing: OrderRoutingGateway,
        object_store: ObjectStoreGateway,
        upload_policy: UploadPolicy,
        clock: Clock = utcnow,
    ):
        self._session_factory = session_factory
        self._order_routing = order_routing
        self._object_store = object_store
        self._policy = upload_policy
        self._clock = clock

    # ── Reads / creation ──────────────────────────────────────────────

    async def get_or_create_pending_permit(self, driver_id: int) -> PermitModel:
        async with self._session_factory() as session:
            repo = PermitRepository(session)
            permit = await repo.get_pending_for_driver(driver_id)
            if permit is not None:
                return permit

            if await DriverRepository(session).get_by_id(driver_id) is None:
                raise NotFound(f"Driver {driver_id} not found")

            try:
                permit = await repo.create_pending(driver_id)
                await session.commit()
                logger.info("Created pending permit %s for driver %s", permit.id, driver_id)
                return permit
            except IntegrityError:
                # Lost the race: another request inserted the pending row first
                await session.rollback()

            permit = await repo.get_pending_for_driver(driver_id)
            if permit is None:
                raise InvalidState(
                    f"Could not create a pending permit for driver {driver_id}"
                )
            return permit

    async def get_current_permit(self, driver_id: int) -> Optional[PermitModel]:
        async with self._session_factory() as session:
            return await PermitRepository(session).get_current_for_driver(
                driver_id, self._clock()
            )

    async def get_current_or_pending(
        self, driver_id: int
    ) -> tuple[PermitModel, PermitStatus]:
        current = await self.get_current_permit(driver_id)
        if current is not None:
            return current, PermitStatus.ACTIVE
        return await self.get_or_create_pending_permit(driver_id), PermitStatus.PENDING

    async def get_permit_history(
        self, driver_id: int, limit: int = 10
    ) -> list[PermitModel]:
        async with self._session_factory() as session:
            return await PermitRepository(session).get_history(driver_id, max(limit, 0))

    # ── Pending-permit mutations ──────────────────────────────────────

    async def update_checklist(
        self, permit_id: int, flags: Mapping[str, object]
    ) -> dict[str, bool]:
        async with self._session_factory() as session:
            permit = await self._load(session, permit_id, for_update=True)
            self._require_pending(permit, "update the checklist of")
            # Assign a new dict so the JSON column is flagged dirty
            permit.checklist = merge_checklist(permit.checklist, flags)
            await session.commit()
            return normalize_checklist(permit.checklist)

    async def upload_photos(
        self, permit_id: int, files: Mapping[str, PhotoUpload]
    ) -> UploadOutcome:
        outcome = UploadOutcome()
        stale_references: list[str] = []
        new_references: list[str] = []

        try:
            async with self._session_factory() as session:
                permit = await self._load(session, permit_id, for_update=True)
                self._require_pending(permit, "upload photos for")
                existing = {PhotoSlot(p.slot): p for p in permit.photos}

                for raw_slot, upload in files.items():
                    try:
                        slot = PhotoSlot(raw_slot)
                    except ValueError:
                        logger.debug("Ignoring upload for unknown slot %r", raw_slot)
                        continue

                    violations = self._policy.violations(upload.size, upload.mime_type)
                    if violations:
                        outcome.results.append(
                            SlotUploadResult(
                                slot.value, False, error=ValidationError(violations, slot.value)
                            )
                        )
                        continue

                    try:
                        stored = await self._object_store.upload(
                            upload.data,
                            upload.original_name,
                            upload.mime_type,
                            slot.value,
                            permit.driver_id,
                        )
                    except UpstreamFailure as exc:
                        outcome.results.append(SlotUploadResult(slot.value, False, error=exc))
                        continue

                    new_references.append(stored.reference)

                    previous = existing.pop(slot, None)
                    if previous is not None:
                        permit.photos.remove(previous)
                        # DELETE must reach the DB before the INSERT for the same slot
                        await session.flush()
                        stale_references.append(previous.filename)

                    photo = PhotoModel(
                        slot=slot,
                        filename=stored.reference,
                        original_name=upload.original_name,
                        mime_type=upload.mime_type,
                        size=upload.size,
                        url=stored.url,
                    )
                    permit.photos.append(photo)
                    await session.flush()
                    outcome.results.append(
                        SlotUploadResult(
                            slot.value, True, photo=photo, replaced=previous is not None
                        )
                    )

                await session.commit()
        except Exception:
            # Rows never landed, so the fresh objects are unreferenced
            for reference in new_references:
                await self._object_store.delete(reference)
            raise

        for reference in stale_references:
            if not await self._object_store.delete(reference):
                logger.warning("Orphaned photo object left behind: %s", reference)

        return outcome

    # ── Readiness / submission ────────────────────────────────────────

    async def check_readiness(self, permit_id: int) -> Readiness:
        async with self._session_factory() as session:
            permit = await self._load(session, permit_id)
            return readiness_of(permit)

    async def submit_permit(self, permit_id: int) -> SubmitResult:
        now = self._clock()
        async with self._session_factory() as session:
            repo = PermitRepository(session)
            permit = await self._load(session, permit_id, for_update=True)
            self._require_pending(permit, "submit")

            current = await repo.get_current_for_driver(permit.driver_id, now)
            if current is not None:
                raise InvalidState(
                    f"Driver {permit.driver_id} already holds active permit {current.id}"
                )

            readiness = readiness_of(permit)
            if not readiness.ready:
                raise NotReady(
                    list(readiness.missing_checklist), list(readiness.missing_photos)
                )

            activate_permit(permit, now)
            await session.commit()

        logger.info(
            "Permit %s activated for driver %s until %s",
            permit.id,
            permit.driver_id,
            permit.expires_at.isoformat(),
        )
        sync = await self._sync_enable(permit)
        return SubmitResult(permit=permit, order_routing=sync)

    # ── Sweeps ────────────────────────────────────────────────────────

    async def expire_permits(self) -> SweepReport:
        """Expire every overdue active permit.  Safe to re-run."""
        now = self._clock()
        async with self._session_factory() as session:
            overdue = await PermitRepository(session).get_overdue_ids(now)

        report = SweepReport()
        for permit_id in overdue:
            try:
                expired = await self._expire_one(permit_id, now, report)
            except Exception:
                # One broken row must not stop the rest of the sweep
                logger.exception("Failed to expire permit %s", permit_id)
                continue
            if expired:
                report.expired += 1

        if report.expired:
            logger.info("Expiry sweep: %d permits expired", report.expired)
        return report

    async def reconcile_order_routing(self) -> ReconcileReport:
        """Re-drive gateway calls whose earlier attempt failed."""
        now = self._clock()
        report = ReconcileReport()

        async with self._session_factory() as session:
            unsynced = await PermitRepository(session).get_unsynced_current_ids(now)
            drivers = DriverRepository(session)
            stale = [d.id for d in await drivers.get_with_stale_orders(now)]
            missing = [d.id for d in await drivers.get_with_missing_orders(now)]

        for permit_id in unsynced:
            async with self._session_factory() as session:
                permit = await PermitRepository(session).get_by_id(permit_id)
            if permit is None or permit.status != PermitStatus.ACTIVE:
                continue
            result = await self._sync_enable(permit)
            if result.success:
                report.enabled += 1
            else:
                report.upstream_failures += 1

        for driver_id in stale:
            result = await self._order_routing.disable_orders(driver_id)
            if not result.success:
                report.upstream_failures += 1
                continue
            await self._update_driver_mirror(driver_id, False)
            report.disabled += 1

        for driver_id in missing:
            result = await self._order_routing.enable_orders(driver_id)
            if not result.success:
                report.upstream_failures += 1
                continue
            await self._update_driver_mirror(driver_id, True)
            report.enabled += 1

        if report.enabled or report.disabled or report.upstream_failures:
            logger.info(
                "Order-routing reconciliation: %d enabled, %d disabled, %d failed",
                report.enabled,
                report.disabled,
                report.upstream_failures,
            )
        return report

    # ── Driver status ─────────────────────────────────────────────────

    async def get_driver_status(self, driver_id: int) -> DriverStatus:
        async with self._session_factory() as session:
            driver = await DriverRepository(session).get_by_id(driver_id)
            if driver is None:
                raise NotFound(f"Driver {driver_id} not found")
            current = await PermitRepository(session).get_current_for_driver(
                driver_id, self._clock()
            )

        result = await self._order_routing.get_status(driver_id)
        if not result.success:
            return DriverStatus(
                orders_enabled=driver.orders_enabled,
                last_checked=driver.last_status_check,
                synced=False,
                has_active_permit=current is not None,
                error=result.error,
            )

        checked_at = await self._update_driver_mirror(driver_id, bool(result.orders_enabled))
        return DriverStatus(
            orders_enabled=bool(result.orders_enabled),
            last_checked=checked_at,
            synced=True,
            has_active_permit=current is not None,
        )

    # ── Internals ─────────────────────────────────────────────────────

    async def _load(
        self, session: AsyncSession, permit_id: int, for_update: bool = False
    ) -> PermitModel:
        permit = await PermitRepository(session).get_by_id(permit_id, for_update)
        if permit is None:
            raise NotFound(f"Permit {permit_id} not found")
        return permit

    @staticmethod
    def _require_pending(permit: PermitModel, action: str) -> None:
        if PermitStatus(permit.status) != PermitStatus.PENDING:
            raise InvalidState(
                f"Cannot {action} permit {permit.id} in status "
                f"{PermitStatus(permit.status).value}"
            )

    async def _expire_one(
        self, permit_id: int, now: datetime, report: SweepReport
    ) -> bool:
        async with self._session_factory() as session:
            repo = PermitRepository(session)
            permit = await repo.get_active_for_update(permit_id)
            # Re-check under the row lock: a concurrent run may have got here first
            if permit is None or as_utc(permit.expires_at) >= now:
                return False
            was_enabled = permit.order_routing_enabled
            expire_permit(permit)
            driver_id = permit.driver_id
            # The sweep may run after the driver already activated a newer permit
            successor = await repo.get_current_for_driver(driver_id, now)
            await session.commit()

        logger.info("Permit %s for driver %s has expired", permit_id, driver_id)
        if successor is not None:
            logger.info(
                "Driver %s holds current permit %s; orders stay enabled",
                driver_id,
                successor.id,
            )
        elif was_enabled:
            result = await self._order_routing.disable_orders(driver_id)
            if result.success:
                await self._update_driver_mirror(driver_id, False)
            else:
                report.upstream_failures.append(permit_id)
        return True

    async def _sync_enable(self, permit: PermitModel) -> GatewayResult:
        result = await self._order_routing.enable_orders(permit.driver_id)
        if not result.success:
            logger.warning(
                "Permit %s is active but order routing was not enabled: %s",
                permit.id,
                result.error,
            )
            return result

        async with self._session_factory() as session:
            stored = await PermitRepository(session).get_by_id(permit.id)
            if stored is not None and stored.status == PermitStatus.ACTIVE:
                stored.order_routing_enabled = True
            driver = await DriverRepository(session).get_by_id(permit.driver_id)
            if driver is not None:
                driver.orders_enabled = True
                driver.last_status_check = self._clock()
            await session.commit()
        permit.order_routing_enabled = True
        return result

    async def _update_driver_mirror(self, driver_id: int, enabled: bool) -> datetime:
        checked_at = self._clock()
        async with self._session_factory() as session:
            driver: Optional[DriverModel] = await DriverRepository(session).get_by_id(
                driver_id
            )
            if driver is None:
                return checked_at
            driver.orders_enabled = enabled
            driver.last_status_check = checked_at
            await session.commit()
        return checked_at
