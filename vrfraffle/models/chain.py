from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    BigInteger,
    Integer,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    UniqueConstraint,
)
from .base import Base
from .column_types import ID_TYPE, Uint256

if TYPE_CHECKING:
    from .raffle import Raffle


class RandomnessRequest(Base):
    """Randomness request issued to the coordinator for a raffle round.

    The row is created when the draw is requested and flipped to
    ``fulfilled`` when the matching callback resolves the round. A
    ``pending`` row that never resolves marks a round stuck in CALCULATING.
    """

    __tablename__ = "randomness_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False
    )
    request_id: Mapped[int] = mapped_column(Uint256(), nullable=False)
    """Coordinator-issued id; unique within a raffle."""
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    num_words: Mapped[int] = mapped_column(Integer, nullable=False)
    random_word: Mapped[Optional[int]] = mapped_column(Uint256(), nullable=True)
    requested_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fulfilled_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="requests")

    __table_args__ = (
        CheckConstraint("status IN ('pending','fulfilled')", name="status_enum"),
        UniqueConstraint("raffle_id", "request_id", name="uq_randomness_request_raffle"),
        Index("ix_randomness_requests_raffle_status", "raffle_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<RandomnessRequest(id={self.id}, raffle_id={self.raffle_id}, "
            f"request_id={self.request_id}, status='{self.status}')>"
        )
