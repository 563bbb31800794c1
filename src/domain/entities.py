"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Permit``: enforces valid lifecycle transitions
  (PENDING -> ACTIVE -> EXPIRED, PENDING -> REJECTED).
- Readiness is a pure predicate over the checklist and attached photo
  slots.  The helpers below are duck-typed so they work equally on these
  dataclasses and on the ORM rows loaded by the repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from .enums import (
    CHECKLIST_KEYS,
    PERMIT_DURATION,
    PERMIT_TRANSITIONS,
    PHOTO_SLOTS,
    PermitStatus,
    PhotoSlot,
)
from .errors import InvalidState


class InvalidStateTransition(InvalidState):
    """Raised when a permit status change violates the state machine."""


# ── Checklist helpers ─────────────────────────────────────────────────


def empty_checklist() -> dict[str, bool]:
    return {key: False for key in CHECKLIST_KEYS}


def normalize_checklist(raw: Optional[Mapping[str, Any]]) -> dict[str, bool]:
    """Return exactly the known keys; missing ones default to False."""
    raw = raw or {}
    return {key: raw.get(key) is True for key in CHECKLIST_KEYS}


def merge_checklist(
    current: Optional[Mapping[str, Any]], updates: Mapping[str, Any]
) -> dict[str, bool]:
    """Merge *updates* into *current*.  Unknown keys are ignored."""
    merged = normalize_checklist(current)
    for key in CHECKLIST_KEYS:
        if key in updates:
            merged[key] = bool(updates[key])
    return merged


# ── Readiness ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Readiness:
    missing_checklist: tuple[str, ...] = ()
    missing_photos: tuple[str, ...] = ()

    @property
    def ready(self) -> bool:
        return not self.missing_checklist and not self.missing_photos


def _slot_value(slot: Any) -> str:
    return slot.value if isinstance(slot, PhotoSlot) else str(slot)


def evaluate_readiness(
    checklist: Optional[Mapping[str, Any]], photo_slots: Iterable[Any]
) -> Readiness:
    normalized = normalize_checklist(checklist)
    present = {_slot_value(s) for s in photo_slots}
    return Readiness(
        missing_checklist=tuple(k for k in CHECKLIST_KEYS if not normalized[k]),
        missing_photos=tuple(s.value for s in PHOTO_SLOTS if s.value not in present),
    )


def readiness_of(permit: Any) -> Readiness:
    """Readiness for anything exposing ``checklist`` and ``photos[].slot``."""
    return evaluate_readiness(
        permit.checklist, (photo.slot for photo in permit.photos)
    )


def is_ready(permit: Any) -> bool:
    return readiness_of(permit).ready


# ── Transitions ───────────────────────────────────────────────────────


def check_transition(current: PermitStatus, new_status: PermitStatus) -> None:
    allowed = PERMIT_TRANSITIONS.get(PermitStatus(current), set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition permit from {PermitStatus(current).value} "
            f"to {new_status.value}"
        )


def activate_permit(permit: Any, now: datetime) -> None:
    """Start the 16-hour validity window.  Orders stay off until the gateway confirms."""
    check_transition(permit.status, PermitStatus.ACTIVE)
    permit.status = PermitStatus.ACTIVE
    permit.issued_at = now
    permit.expires_at = now + PERMIT_DURATION
    permit.order_routing_enabled = False


def expire_permit(permit: Any) -> None:
    check_transition(permit.status, PermitStatus.EXPIRED)
    permit.status = PermitStatus.EXPIRED
    permit.order_routing_enabled = False


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Photo:
    slot: PhotoSlot
    filename: str = ""
    url: str = ""
    id: Optional[int] = None


@dataclass
class Permit:
    id: Optional[int] = None
    driver_id: int = 0
    status: PermitStatus = PermitStatus.PENDING
    checklist: dict[str, bool] = field(default_factory=empty_checklist)
    photos: list[Photo] = field(default_factory=list)
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    order_routing_enabled: bool = False

    def transition_to(self, new_status: PermitStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        check_transition(self.status, new_status)
        self.status = new_status

    def activate(self, now: datetime) -> None:
        activate_permit(self, now)

    def expire(self) -> None:
        expire_permit(self)

    def is_current(self, now: datetime) -> bool:
        return (
            self.status == PermitStatus.ACTIVE
            and self.expires_at is not None
            and self.expires_at > now
        )
