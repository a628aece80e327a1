"""Events, invite codes and results."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("timezone('utc', now())"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.String(length=40), nullable=True),
        sa.Column("end_date", sa.String(length=40), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="upcoming"),
        sa.Column("typing_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("timer_duration", sa.Integer(), nullable=False, server_default="60"),
        _created_at("created_at"),
        sa.CheckConstraint(
            "status in ('upcoming','active','completed')", name="ck_events_status_valid"
        ),
        sa.CheckConstraint("timer_duration >= 0", name="ck_events_timer_non_negative"),
    )

    op.create_table(
        "invite_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("class_name", sa.String(length=100), nullable=False, server_default=""),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at("created_at"),
    )
    op.create_index(op.f("ix_invite_codes_code"), "invite_codes", ["code"], unique=True)
    op.create_index(op.f("ix_invite_codes_event_id"), "invite_codes", ["event_id"], unique=False)

    op.create_table(
        "results",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invite_code_id",
            sa.Integer(),
            sa.ForeignKey("invite_codes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("class_name", sa.String(length=100), nullable=False),
        sa.Column("wpm", sa.Float(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=False),
        sa.Column("total_words", sa.Integer(), nullable=False),
        sa.Column("correct_words", sa.Integer(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=False),
        _created_at("completed_at"),
        sa.CheckConstraint("correct_words <= total_words", name="ck_results_words"),
    )
    op.create_index(op.f("ix_results_invite_code_id"), "results", ["invite_code_id"], unique=False)
    op.create_index(op.f("ix_results_event_id"), "results", ["event_id"], unique=False)
    op.create_index("ix_results_ranking", "results", ["event_id", "wpm", "accuracy"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_results_ranking", table_name="results")
    op.drop_index(op.f("ix_results_event_id"), table_name="results")
    op.drop_index(op.f("ix_results_invite_code_id"), table_name="results")
    op.drop_table("results")
    op.drop_index(op.f("ix_invite_codes_event_id"), table_name="invite_codes")
    op.drop_index(op.f("ix_invite_codes_code"), table_name="invite_codes")
    op.drop_table("invite_codes")
    op.drop_table("events")
