"""initial gift split schema"""
from alembic import op
import sqlalchemy as sa

revision = "20260301_initial_gift_split_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "gifts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("split_locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_amount_cents >= 0", name="ck_gifts_total_non_negative"),
    )
    op.create_index("ix_gifts_created_at", "gifts", ["created_at"])

    op.create_table(
        "gift_invitees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "gift_id",
            sa.Integer(),
            sa.ForeignKey("gifts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("gift_id", "email", name="uq_gift_invitees_gift_email"),
        sa.CheckConstraint(
            "amount_cents IS NULL OR amount_cents >= 0",
            name="ck_gift_invitees_amount_non_negative",
        ),
    )
    op.create_index("ix_gift_invitees_gift_created", "gift_invitees", ["gift_id", "created_at"])
    op.create_index("ix_gift_invitees_status", "gift_invitees", ["status"])

    op.create_table(
        "gift_invitation_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "gift_id",
            sa.Integer(),
            sa.ForeignKey("gifts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_gift_invitation_links_gift_created",
        "gift_invitation_links",
        ["gift_id", "created_at"],
    )

    op.create_table(
        "checkout_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "invitee_id",
            sa.Integer(),
            sa.ForeignKey("gift_invitees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=False, unique=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("amount_total_cents", sa.Integer(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("stripe_payment_intent_id", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_checkout_sessions_invitee_created",
        "checkout_sessions",
        ["invitee_id", "created_at"],
    )
    op.create_index(
        "uq_checkout_sessions_invitee_open",
        "checkout_sessions",
        ["invitee_id"],
        unique=True,
        sqlite_where=sa.text("status = 'created'"),
        postgresql_where=sa.text("status = 'created'"),
    )

    op.create_table(
        "stripe_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stripe_event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column(
            "received_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("handled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("stripe_event_id", name="uq_stripe_events_stripe_event_id"),
    )
    op.create_index("ix_stripe_events_received", "stripe_events", ["received_at"])
    op.create_index("ix_stripe_events_type", "stripe_events", ["event_type"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_stripe_events_type", table_name="stripe_events")
    op.drop_index("ix_stripe_events_received", table_name="stripe_events")
    op.drop_table("stripe_events")
    op.drop_index("uq_checkout_sessions_invitee_open", table_name="checkout_sessions")
    op.drop_index("ix_checkout_sessions_invitee_created", table_name="checkout_sessions")
    op.drop_table("checkout_sessions")
    op.drop_index("ix_gift_invitation_links_gift_created", table_name="gift_invitation_links")
    op.drop_table("gift_invitation_links")
    op.drop_index("ix_gift_invitees_status", table_name="gift_invitees")
    op.drop_index("ix_gift_invitees_gift_created", table_name="gift_invitees")
    op.drop_table("gift_invitees")
    op.drop_index("ix_gifts_created_at", table_name="gifts")
    op.drop_table("gifts")
