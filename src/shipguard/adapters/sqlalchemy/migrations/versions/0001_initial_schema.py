"""initial mirror schema

Revision ID: 0001
Revises:
Create Date: 2026-09-28 10:12:44.118305

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

POLICY_STATUSES = ("Active", "Claimed", "Expired", "Cancelled")
SHIPMENT_STATUSES = ("InTransit", "Delivered", "Damaged", "Lost")


def upgrade() -> None:
    op.create_table(
        "policy",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("policy_id", sa.Integer(), nullable=False),
        sa.Column("holder", sa.String(length=64), nullable=False),
        sa.Column("shipment_id", sa.String(length=128), nullable=False),
        sa.Column("coverage_amount", sa.String(length=78), nullable=False),
        sa.Column("premium", sa.String(length=78), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "policy_status",
            sa.Enum(*POLICY_STATUSES, name="policy_status", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "shipment_status",
            sa.Enum(*SHIPMENT_STATUSES, name="shipment_status", native_enum=False),
            nullable=False,
        ),
        sa.Column("claim_processed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.current_timestamp(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.current_timestamp(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_policy")),
        sa.UniqueConstraint("policy_id", name=op.f("uq_policy_policy_id")),
        sa.UniqueConstraint("shipment_id", name=op.f("uq_policy_shipment_id")),
    )
    with op.batch_alter_table("policy", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_policy_holder"), ["holder"], unique=False)
        batch_op.create_index(
            batch_op.f("ix_policy_policy_status"), ["policy_status"], unique=False
        )

    op.create_table(
        "claim",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("policy_id", sa.Integer(), nullable=False),
        sa.Column("claimant", sa.String(length=64), nullable=False),
        sa.Column("claim_amount", sa.String(length=78), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved", sa.Boolean(), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["policy_id"],
            ["policy.policy_id"],
            name=op.f("fk_claim_policy_id_policy"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_claim")),
        sa.UniqueConstraint("policy_id", name=op.f("uq_claim_policy_id")),
    )

    op.create_table(
        "tracking",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("shipment_id", sa.String(length=128), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*SHIPMENT_STATUSES, name="tracking_status", native_enum=False),
            nullable=False,
        ),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tracking")),
    )
    with op.batch_alter_table("tracking", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_tracking_shipment_id"), ["shipment_id"], unique=False
        )


def downgrade() -> None:
    with op.batch_alter_table("tracking", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_tracking_shipment_id"))
    op.drop_table("tracking")

    op.drop_table("claim")

    with op.batch_alter_table("policy", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_policy_policy_status"))
        batch_op.drop_index(batch_op.f("ix_policy_holder"))
    op.drop_table("policy")
