"""Raffle state machine: entries, upkeep checks, draw requests and payouts."""

from .engine import RaffleEngine, UpkeepCheck
from .errors import (
    InsufficientPayment,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    RaffleError,
    RoundNotOpen,
    UnknownRequest,
    UpkeepNotReady,
)
from .interfaces import PayoutGateway, RandomnessCoordinator
from .selection import select_winner_index

__all__ = [
    "RaffleEngine",
    "UpkeepCheck",
    "RaffleError",
    "InsufficientPayment",
    "RoundNotOpen",
    "UpkeepNotReady",
    "UnknownRequest",
    "OnlyCoordinatorCanFulfill",
    "PayoutFailed",
    "PayoutGateway",
    "RandomnessCoordinator",
    "select_winner_index",
]
