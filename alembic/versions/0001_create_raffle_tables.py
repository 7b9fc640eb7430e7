"""create raffle tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
UINT256 = sa.String(length=78)


def upgrade() -> None:
    op.create_table(
        "raffles",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("entrance_fee", UINT256, nullable=False),
        sa.Column("interval_seconds", sa.BigInteger(), nullable=False),
        sa.Column("gas_lane", sa.String(length=66), nullable=False),
        sa.Column("subscription_id", UINT256, nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column("callback_gas_limit", sa.BigInteger(), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("coordinator_address", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("pooled_balance", UINT256, nullable=False),
        sa.Column("last_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("outstanding_request_id", UINT256, nullable=True),
        sa.Column("recent_winner", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "interval_seconds >= 0", name=op.f("ck_raffles_interval_non_negative")
        ),
        sa.CheckConstraint("num_words > 0", name=op.f("ck_raffles_num_words_positive")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffles")),
    )

    op.create_table(
        "raffle_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("raffle_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("player", sa.String(length=100), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_raffle_entries_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_entries")),
        sa.UniqueConstraint(
            "raffle_id", "round_number", "position", name="uq_raffle_entry_position"
        ),
    )
    op.create_index(
        op.f("ix_raffle_entries_raffle_id"), "raffle_entries", ["raffle_id"], unique=False
    )
    op.create_index(
        "ix_raffle_entries_round", "raffle_entries", ["raffle_id", "round_number"], unique=False
    )

    op.create_table(
        "randomness_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", ID_TYPE, nullable=False),
        sa.Column("request_id", UINT256, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("random_word", UINT256, nullable=True),
        sa.Column("requested_at", sa.BigInteger(), nullable=False),
        sa.Column("fulfilled_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending','fulfilled')", name=op.f("ck_randomness_requests_status_enum")
        ),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_randomness_requests_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_randomness_requests")),
        sa.UniqueConstraint("raffle_id", "request_id", name="uq_randomness_request_raffle"),
    )
    op.create_index(
        "ix_randomness_requests_raffle_status",
        "randomness_requests",
        ["raffle_id", "status"],
        unique=False,
    )

    op.create_table(
        "round_results",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("raffle_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("winner", sa.String(length=100), nullable=False),
        sa.Column("prize", UINT256, nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("request_id", UINT256, nullable=False),
        sa.Column("random_word", UINT256, nullable=False),
        sa.Column("winner_index", sa.Integer(), nullable=False),
        sa.Column("payout_reference", sa.String(length=255), nullable=True),
        sa.Column("resolved_at", sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_round_results_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_round_results")),
        sa.UniqueConstraint("raffle_id", "round_number", name="uq_round_result_round"),
    )
    op.create_index(
        op.f("ix_round_results_raffle_id"), "round_results", ["raffle_id"], unique=False
    )

    op.create_table(
        "raffle_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", ID_TYPE, nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("args", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "name IN ('RaffleEnter','RequestedRaffleWinner','WinnerPicked')",
            name=op.f("ck_raffle_logs_name_enum"),
        ),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_raffle_logs_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_logs")),
    )
    op.create_index(
        op.f("ix_raffle_logs_raffle_id"), "raffle_logs", ["raffle_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_raffle_logs_raffle_id"), table_name="raffle_logs")
    op.drop_table("raffle_logs")
    op.drop_index(op.f("ix_round_results_raffle_id"), table_name="round_results")
    op.drop_table("round_results")
    op.drop_index("ix_randomness_requests_raffle_status", table_name="randomness_requests")
    op.drop_table("randomness_requests")
    op.drop_index("ix_raffle_entries_round", table_name="raffle_entries")
    op.drop_index(op.f("ix_raffle_entries_raffle_id"), table_name="raffle_entries")
    op.drop_table("raffle_entries")
    op.drop_table("raffles")
