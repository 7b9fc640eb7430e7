"""Database models for the raffle state machine."""

from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .column_types import ID_TYPE, Uint256
from ..db.utils import dt_iso, unix_to_datetime

if TYPE_CHECKING:
    from .chain import RandomnessRequest
    from .log import RaffleLog


class RaffleState(enum.IntEnum):
    """Lifecycle of the current round.

    ``OPEN`` admits entries. ``CALCULATING`` means a randomness request is
    outstanding and entries are refused until it is fulfilled.
    """

    OPEN = 0
    CALCULATING = 1


class Raffle(Base):
    """A single raffle instance: immutable configuration plus round state."""

    __tablename__ = "raffles"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Optional label, e.g. the network the raffle was configured for."""

    entrance_fee: Mapped[int] = mapped_column(Uint256(), nullable=False)
    """Minimum payment (wei) accepted by :meth:`RaffleEngine.enter`."""

    interval: Mapped[int] = mapped_column("interval_seconds", BigInteger, nullable=False)
    """Seconds that must elapse after the last resolution before a new draw."""

    gas_lane: Mapped[str] = mapped_column(String(66), nullable=False)
    """Oracle key hash routing the randomness request."""

    subscription_id: Mapped[int] = mapped_column(Uint256(), nullable=False)
    """Oracle subscription billed for the request."""

    request_confirmations: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    """Block confirmations the oracle waits before responding."""

    callback_gas_limit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Resource budget granted to the fulfillment callback."""

    num_words: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Random words requested per draw."""

    coordinator_address: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Identity of the only caller allowed to fulfill requests."""

    state: Mapped[RaffleState] = mapped_column(
        Enum(RaffleState, native_enum=False, length=20),
        nullable=False,
        default=RaffleState.OPEN,
    )

    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Current round. Entries with a smaller round number belong to history."""

    pooled_balance: Mapped[int] = mapped_column(Uint256(), nullable=False, default=0)
    """Sum of entrance payments collected during the current round."""

    last_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Unix seconds of the latest resolution (deployment time for round 1)."""

    outstanding_request_id: Mapped[Optional[int]] = mapped_column(Uint256(), nullable=True)

    recent_winner: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["RaffleEntry"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
    )
    requests: Mapped[list["RandomnessRequest"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
    )
    results: Mapped[list["RoundResult"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
        order_by="RoundResult.round_number",
    )
    logs: Mapped[list["RaffleLog"]] = relationship(
        back_populates="raffle",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("interval_seconds >= 0", name="interval_non_negative"),
        CheckConstraint("num_words > 0", name="num_words_positive"),
    )

    def __init__(
        self,
        *,
        entrance_fee: int,
        interval: int,
        gas_lane: str,
        subscription_id: int,
        callback_gas_limit: int,
        last_timestamp: int,
        coordinator_address: Optional[str] = None,
        request_confirmations: int = 3,
        num_words: int = 1,
        name: Optional[str] = None,
    ) -> None:
        if entrance_fee <= 0:
            raise ValueError("entrance_fee must be positive")
        if interval < 0:
            raise ValueError("interval must be non-negative")
        self.entrance_fee = entrance_fee
        self.interval = interval
        self.gas_lane = gas_lane
        self.subscription_id = subscription_id
        self.callback_gas_limit = callback_gas_limit
        self.last_timestamp = last_timestamp
        self.coordinator_address = coordinator_address
        self.request_confirmations = request_confirmations
        self.num_words = num_words
        self.name = name
        self.state = RaffleState.OPEN
        self.round_number = 1
        self.pooled_balance = 0
        self.outstanding_request_id = None
        self.recent_winner = None

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Raffle(id={id}, state={state}, round={round}, pool={pool})>".format(
            id=self.id,
            state=self.state.name if self.state is not None else None,
            round=self.round_number,
            pool=self.pooled_balance,
        )

    def _current_entries_stmt(self):
        return (
            select(RaffleEntry)
            .where(
                RaffleEntry.raffle_id == self.id,
                RaffleEntry.round_number == self.round_number,
            )
            .order_by(RaffleEntry.position.asc())
        )

    def players(self, session: Session) -> list[str]:
        """Return the current round's participants in entry order."""

        return [entry.player for entry in session.scalars(self._current_entries_stmt())]

    def number_of_players(self, session: Session) -> int:
        """Return how many tickets were bought in the current round."""

        stmt = select(func.count(RaffleEntry.id)).where(
            RaffleEntry.raffle_id == self.id,
            RaffleEntry.round_number == self.round_number,
        )
        return int(session.scalar(stmt) or 0)

    def get_player(self, session: Session, index: int) -> str:
        """Return the participant holding ticket ``index`` in the current round.

        Raises
        ------
        IndexError
            If ``index`` does not address a current ticket.
        """

        if index < 0:
            raise IndexError("player index out of range")
        entry = session.scalar(
            select(RaffleEntry).where(
                RaffleEntry.raffle_id == self.id,
                RaffleEntry.round_number == self.round_number,
                RaffleEntry.position == index,
            )
        )
        if entry is None:
            raise IndexError("player index out of range")
        return entry.player

    def to_json(self, session: Optional[Session] = None) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the raffle.

        uint256 values are rendered as decimal strings. The current players
        are included only when ``session`` is given.
        """

        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "state": self.state.name,
            "round_number": self.round_number,
            "entrance_fee": str(self.entrance_fee),
            "interval": self.interval,
            "pooled_balance": str(self.pooled_balance),
            "last_timestamp": dt_iso(unix_to_datetime(self.last_timestamp)),
            "outstanding_request_id": (
                str(self.outstanding_request_id)
                if self.outstanding_request_id is not None
                else None
            ),
            "recent_winner": self.recent_winner,
        }
        if session is not None:
            data["players"] = self.players(session)
        return data

    def to_json_str(self, session: Optional[Session] = None) -> str:
        return json.dumps(self.to_json(session), ensure_ascii=False)


class RaffleEntry(Base):
    """One ticket bought by ``player`` in a given round."""

    __tablename__ = "raffle_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    """Zero-based ticket index within the round, in entry order."""

    player: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[int] = mapped_column(Uint256(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint(
            "raffle_id", "round_number", "position", name="uq_raffle_entry_position"
        ),
        Index("ix_raffle_entries_round", "raffle_id", "round_number"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleEntry(raffle_id={self.raffle_id}, round={self.round_number}, "
            f"position={self.position}, player={self.player})>"
        )


class RoundResult(Base):
    """Immutable record of a resolved round and its payout."""

    __tablename__ = "round_results"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    winner: Mapped[str] = mapped_column(String(100), nullable=False)
    prize: Mapped[int] = mapped_column(Uint256(), nullable=False)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    request_id: Mapped[int] = mapped_column(Uint256(), nullable=False)
    random_word: Mapped[int] = mapped_column(Uint256(), nullable=False)
    winner_index: Mapped[int] = mapped_column(Integer, nullable=False)
    payout_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Transaction reference returned by the payout gateway, if any."""

    resolved_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Unix seconds of the resolution; equals the raffle's new ``last_timestamp``."""

    raffle: Mapped["Raffle"] = relationship(back_populates="results")

    __table_args__ = (
        UniqueConstraint("raffle_id", "round_number", name="uq_round_result_round"),
    )

    def to_json(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "winner": self.winner,
            "prize": str(self.prize),
            "participant_count": self.participant_count,
            "request_id": str(self.request_id),
            "winner_index": self.winner_index,
            "payout_reference": self.payout_reference,
            "resolved_at": dt_iso(unix_to_datetime(self.resolved_at)),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RoundResult(raffle_id={self.raffle_id}, round={self.round_number}, "
            f"winner={self.winner}, prize={self.prize})>"
        )


__all__ = [
    "RaffleState",
    "Raffle",
    "RaffleEntry",
    "RoundResult",
]
