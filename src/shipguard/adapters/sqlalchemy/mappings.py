"""SQLAlchemy mapping metadata for the mirror."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    false,
    func,
    orm,
)
from sqlalchemy.orm import configure_mappers

from shipguard.domain.model import (
    Claim,
    Policy,
    PolicyStatus,
    ShipmentStatus,
    TrackingEntry,
)

if TYPE_CHECKING:
    from enum import StrEnum

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

# uint256 needs up to 78 decimal digits
WEI_DIGITS = 78


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class WeiAmount(TypeDecorator[int]):
    """Exact integer amounts in wei, stored as decimal strings."""

    impl = String(WEI_DIGITS)
    cache_ok = True

    def process_bind_param(self, value: int | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        if value < 0:
            raise ValueError(f"Amounts cannot be negative: {value}")
        return str(int(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> int | None:
        _ = dialect
        if value is None:
            return None
        return int(value)


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _status_enum(enum_cls: type[StrEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=_enum_values,
        validate_strings=True,
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

policy_table = Table(
    "policy",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("policy_id", Integer, nullable=False, unique=True),
    Column("holder", String(64), nullable=False, index=True),
    Column("shipment_id", String(128), nullable=False, unique=True),
    Column("coverage_amount", WeiAmount(), nullable=False),
    Column("premium", WeiAmount(), nullable=False),
    Column("start_time", UTCDateTime(), nullable=False),
    Column("end_time", UTCDateTime(), nullable=False),
    Column(
        "policy_status",
        _status_enum(PolicyStatus, "policy_status"),
        nullable=False,
        default=PolicyStatus.ACTIVE,
        index=True,
    ),
    Column(
        "shipment_status",
        _status_enum(ShipmentStatus, "shipment_status"),
        nullable=False,
        default=ShipmentStatus.IN_TRANSIT,
    ),
    Column("claim_processed", Boolean, nullable=False, default=False, server_default=false()),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.current_timestamp()),
    Column(
        "updated_at",
        UTCDateTime(),
        nullable=False,
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    ),
)

claim_table = Table(
    "claim",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "policy_id",
        Integer,
        ForeignKey("policy.policy_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("claimant", String(64), nullable=False),
    Column("claim_amount", WeiAmount(), nullable=False),
    Column("timestamp", UTCDateTime(), nullable=False),
    Column("approved", Boolean, nullable=False, default=True),
    Column("processed", Boolean, nullable=False, default=True),
)

tracking_table = Table(
    "tracking",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shipment_id", String(128), nullable=False, index=True),
    Column("status", _status_enum(ShipmentStatus, "tracking_status"), nullable=False),
    Column("location", String(255), nullable=True),
    Column("note", Text, nullable=True),
    Column("timestamp", UTCDateTime(), nullable=False),
)

# Single row holding the serialised local ledger; ``version`` is bumped by every
# write so the row lock is taken before the state is read.
ledger_state_table = Table(
    "ledger_state",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("version", Integer, nullable=False, default=0),
    Column("state", Text, nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Map the domain dataclasses onto their tables once per process."""

    mapper_registry.map_imperatively(
        Policy,
        policy_table,
        exclude_properties={"created_at", "updated_at"},
    )
    mapper_registry.map_imperatively(Claim, claim_table)
    mapper_registry.map_imperatively(TrackingEntry, tracking_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
