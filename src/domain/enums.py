"""Domain enumerations, lifecycle constants and state-transition rules."""

import enum
from datetime import timedelta


class PermitStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REJECTED = "rejected"


# State machine: maps current status -> set of valid next statuses.
# REJECTED is reserved for a future manual-review step; nothing triggers it yet.
PERMIT_TRANSITIONS: dict[PermitStatus, set[PermitStatus]] = {
    PermitStatus.PENDING: {PermitStatus.ACTIVE, PermitStatus.REJECTED},
    PermitStatus.ACTIVE: {PermitStatus.EXPIRED},
    PermitStatus.EXPIRED: set(),
    PermitStatus.REJECTED: set(),
}


class PhotoSlot(str, enum.Enum):
    WAYBILL_1 = "waybill_1"
    WAYBILL_2 = "waybill_2"
    CAR_EXTERIOR = "car_exterior"
    CAR_INTERIOR = "car_interior"


PHOTO_SLOTS: tuple[PhotoSlot, ...] = tuple(PhotoSlot)

CHECKLIST_KEYS: tuple[str, ...] = (
    "plafon",
    "carWrapped",
    "businessCard",
    "dashcam",
    "firstAidKit",
    "tireCondition",
    "lights",
    "taximeter",
    "medicalCheck",
)

PERMIT_DURATION = timedelta(hours=16)
