"""
SQLAlchemy ORM models.

Tables
------
* ``drivers``  -- registered drivers (created at registration, never deleted)
* ``permits``  -- time-boxed work permits, one lifecycle per row
* ``photos``   -- readiness photos attached to a permit, one per slot

Indexes
-------
* **Partial unique** on ``permits(driver_id) WHERE status = 'pending'``:
  closes the get-or-create race, a second concurrent insert fails.
* **Unique** on ``photos(permit_id, slot)``: re-upload replaces, never appends.
* **B-Tree** on ``status`` / ``expires_at`` for the expiry sweep.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from src.domain.entities import empty_checklist
from src.domain.enums import PermitStatus, PhotoSlot


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class DriverModel(Base):
    __tablename__ = "drivers"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=True)
    email = Column(String(100), nullable=True)
    license_number = Column(String(50), nullable=True)
    car_number = Column(String(20), nullable=True)
    car_model = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Best-effort mirror of the order-routing gateway flag
    orders_enabled = Column(Boolean, default=False, nullable=False)
    last_status_check = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class PermitModel(Base):
    __tablename__ = "permits"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    status = Column(
        Enum(PermitStatus, name="permitstatus", values_callable=_enum_values),
        default=PermitStatus.PENDING,
        nullable=False,
    )
    checklist = Column(JSON, nullable=False, default=empty_checklist)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    order_routing_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    photos = relationship(
        "PhotoModel",
        back_populates="permit",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PhotoModel.id",
    )

    __table_args__ = (
        Index("idx_permits_driver", "driver_id"),
        Index("idx_permits_status", "status"),
        Index("idx_permits_expires", "expires_at"),
        Index(
            "uq_permits_driver_pending",
            "driver_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )


class PhotoModel(Base):
    __tablename__ = "photos"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    permit_id = Column(
        Integer, ForeignKey("permits.id", ondelete="CASCADE"), nullable=False
    )
    slot = Column(
        Enum(PhotoSlot, name="photoslot", values_callable=_enum_values),
        nullable=False,
    )
    filename = Column(String(255), nullable=False)  # object-store reference
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    url = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    permit = relationship("PermitModel", back_populates="photos")

    __table_args__ = (
        UniqueConstraint("permit_id", "slot", name="uq_photos_permit_slot"),
        Index("idx_photos_permit", "permit_id"),
    )
