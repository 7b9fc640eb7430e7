from __future__ import annotations
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, DateTime, ForeignKey, CheckConstraint, JSON
from .base import Base
from .column_types import ID_TYPE

if TYPE_CHECKING:
    from .raffle import Raffle

RAFFLE_ENTER = "RaffleEnter"
REQUESTED_RAFFLE_WINNER = "RequestedRaffleWinner"
WINNER_PICKED = "WinnerPicked"


class RaffleLog(Base):
    """Notification emitted by a raffle operation.

    Logs are written in the same transaction as the state change that emits
    them, so an aborted operation never leaves a log behind.
    """

    __tablename__ = "raffle_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raffle_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("raffles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # uint256 values are kept as strings so JSON backends do not truncate them
    args: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="logs")

    __table_args__ = (
        CheckConstraint(
            "name IN ('RaffleEnter','RequestedRaffleWinner','WinnerPicked')",
            name="name_enum",
        ),
    )

    def arg(self, key: str) -> Optional[Any]:
        return (self.args or {}).get(key)

    def __repr__(self) -> str:
        return f"<RaffleLog(id={self.id}, raffle_id={self.raffle_id}, name={self.name}, args={self.args})>"
