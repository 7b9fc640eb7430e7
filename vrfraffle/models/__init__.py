from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .raffle import Raffle, RaffleEntry, RaffleState, RoundResult  # noqa: F401
from .chain import RandomnessRequest  # noqa: F401
from .log import (  # noqa: F401
    RAFFLE_ENTER,
    REQUESTED_RAFFLE_WINNER,
    WINNER_PICKED,
    RaffleLog,
)

__all__ = [
    "Base",
    "Raffle",
    "RaffleEntry",
    "RaffleState",
    "RoundResult",
    "RandomnessRequest",
    "RaffleLog",
    "RAFFLE_ENTER",
    "REQUESTED_RAFFLE_WINNER",
    "WINNER_PICKED",
]
