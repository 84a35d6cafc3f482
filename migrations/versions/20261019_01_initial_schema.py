"""Initial schema for users, events, reservations and the points ledger."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create ticketing tables and their constraints."""

    user_role = sa.Enum("ADMIN", "ORGANIZER", "CUSTOMER", name="user_role")
    promotion_kind = sa.Enum("PERCENT", "FIXED", name="promotion_kind")
    reservation_status = sa.Enum(
        "WAITING_PAYMENT",
        "WAITING_CONFIRMATION",
        "DONE",
        "REJECTED",
        "CANCELED",
        "EXPIRED",
        name="reservation_status",
    )

    user_role.create(op.get_bind(), checkfirst=True)
    promotion_kind.create(op.get_bind(), checkfirst=True)
    reservation_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("points_balance", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organizer_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255)),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("seats_available", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organizer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("seats_available >= 0", name="ck_events_seats_available_non_negative"),
        sa.CheckConstraint("seats_available <= capacity", name="ck_events_seats_within_capacity"),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("price_idr", sa.BigInteger(), nullable=False),
        sa.Column("quota", sa.Integer()),
        sa.Column("sold", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.CheckConstraint("price_idr >= 0", name="ck_ticket_types_price_non_negative"),
        sa.CheckConstraint("sold >= 0", name="ck_ticket_types_sold_non_negative"),
        sa.CheckConstraint("quota IS NULL OR sold <= quota", name="ck_ticket_types_sold_within_quota"),
    )
    op.create_index("ix_ticket_types_event_id", "ticket_types", ["event_id"])

    op.create_table(
        "promotions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("kind", promotion_kind, nullable=False),
        sa.Column("value", sa.BigInteger(), nullable=False),
        sa.Column("min_spend_idr", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer()),
        sa.Column("uses_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("event_id", "code", name="uq_promotions_event_code"),
        sa.CheckConstraint("value >= 0", name="ck_promotions_value_non_negative"),
        sa.CheckConstraint("min_spend_idr >= 0", name="ck_promotions_min_spend_non_negative"),
        sa.CheckConstraint("uses_count >= 0", name="ck_promotions_uses_non_negative"),
        sa.CheckConstraint("max_uses IS NULL OR uses_count <= max_uses", name="ck_promotions_uses_within_cap"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("promotion_id", sa.String(length=36)),
        sa.Column("promo_code", sa.String(length=64)),
        sa.Column("status", reservation_status, nullable=False),
        sa.Column("total_before_idr", sa.BigInteger(), nullable=False),
        sa.Column("promo_discount_idr", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("points_used_idr", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_payable_idr", sa.BigInteger(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("decision_due_at", sa.DateTime(timezone=True)),
        sa.Column("payment_proof_url", sa.String(length=1024)),
        sa.Column("payment_proof_at", sa.DateTime(timezone=True)),
        sa.Column("decided_at", sa.DateTime(timezone=True)),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"], ondelete="SET NULL"),
        sa.CheckConstraint("total_before_idr >= 0", name="ck_reservations_total_before_non_negative"),
        sa.CheckConstraint("promo_discount_idr >= 0", name="ck_reservations_discount_non_negative"),
        sa.CheckConstraint("points_used_idr >= 0", name="ck_reservations_points_non_negative"),
        sa.CheckConstraint("total_payable_idr >= 0", name="ck_reservations_payable_non_negative"),
        sa.CheckConstraint(
            "total_payable_idr = total_before_idr - promo_discount_idr - points_used_idr",
            name="ck_reservations_payable_balanced",
        ),
    )
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"])
    op.create_index("ix_reservations_event_id", "reservations", ["event_id"])
    op.create_index("ix_reservations_status_expires_at", "reservations", ["status", "expires_at"])
    op.create_index(
        "ix_reservations_status_decision_due_at", "reservations", ["status", "decision_due_at"]
    )

    op.create_table(
        "reservation_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.String(length=36), nullable=False),
        sa.Column("ticket_type_id", sa.String(length=36), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_idr", sa.BigInteger(), nullable=False),
        sa.Column("line_total_idr", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ticket_type_id"], ["ticket_types.id"], ondelete="RESTRICT"),
        sa.CheckConstraint("quantity > 0", name="ck_reservation_items_quantity_positive"),
        sa.CheckConstraint("unit_price_idr >= 0", name="ck_reservation_items_unit_price_non_negative"),
        sa.CheckConstraint("line_total_idr = unit_price_idr * quantity", name="ck_reservation_items_line_total"),
    )
    op.create_index("ix_reservation_items_reservation_id", "reservation_items", ["reservation_id"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("reservation_id", sa.String(length=36), nullable=False),
        sa.Column("ticket_type_id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=36), nullable=False),
        sa.Column("holder_id", sa.String(length=36), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["ticket_type_id"], ["ticket_types.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["holder_id"], ["users.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("code", name="uq_tickets_code"),
    )
    op.create_index("ix_tickets_reservation_id", "tickets", ["reservation_id"])
    op.create_index("ix_tickets_holder_id", "tickets", ["holder_id"])

    op.create_table(
        "points_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("delta_idr", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("reservation_id", sa.String(length=36)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="SET NULL"),
        sa.CheckConstraint("delta_idr <> 0", name="ck_points_ledger_delta_non_zero"),
    )
    op.create_index("ix_points_ledger_user_id", "points_ledger", ["user_id"])
    op.create_index("ix_points_ledger_reservation_id", "points_ledger", ["reservation_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_id", sa.String(length=36)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:  # noqa: D401
    """Drop all ticketing tables."""

    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_points_ledger_reservation_id", table_name="points_ledger")
    op.drop_index("ix_points_ledger_user_id", table_name="points_ledger")
    op.drop_table("points_ledger")

    op.drop_index("ix_tickets_holder_id", table_name="tickets")
    op.drop_index("ix_tickets_reservation_id", table_name="tickets")
    op.drop_table("tickets")

    op.drop_index("ix_reservation_items_reservation_id", table_name="reservation_items")
    op.drop_table("reservation_items")

    op.drop_index("ix_reservations_status_decision_due_at", table_name="reservations")
    op.drop_index("ix_reservations_status_expires_at", table_name="reservations")
    op.drop_index("ix_reservations_event_id", table_name="reservations")
    op.drop_index("ix_reservations_user_id", table_name="reservations")
    op.drop_table("reservations")

    op.drop_table("promotions")

    op.drop_index("ix_ticket_types_event_id", table_name="ticket_types")
    op.drop_table("ticket_types")

    op.drop_index("ix_events_organizer_id", table_name="events")
    op.drop_table("events")

    op.drop_table("users")

    for enum_name in ["reservation_status", "promotion_kind", "user_role"]:
        _drop_enum(enum_name)
