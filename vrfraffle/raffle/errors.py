"""Exceptions raised by raffle operations.

Every error aborts the operation that raised it without leaving partial
state behind; callers receive the specific reason and decide whether to
retry.
"""

from __future__ import annotations

from typing import Optional

from ..models.raffle import RaffleState


class RaffleError(RuntimeError):
    """Base class for all raffle operation failures."""


class InsufficientPayment(RaffleError):
    """Payment sent to :meth:`RaffleEngine.enter` is below the entrance fee."""

    def __init__(self, amount: int, entrance_fee: int) -> None:
        self.amount = amount
        self.entrance_fee = entrance_fee
        super().__init__(
            f"Not enough paid to enter: sent {amount}, entrance fee is {entrance_fee}"
        )


class RoundNotOpen(RaffleError):
    """Entry attempted while a draw is outstanding."""

    def __init__(self, state: RaffleState) -> None:
        self.state = state
        super().__init__(f"Raffle is not open (state={state.name})")


class UpkeepNotReady(RaffleError):
    """A draw was requested while the round is not ready to conclude.

    Attributes
    ----------
    balance : int
        Pool balance at the time of the check.
    player_count : int
        Number of tickets in the current round.
    state : RaffleState
        Raffle state at the time of the check.
    """

    def __init__(self, balance: int, player_count: int, state: RaffleState) -> None:
        self.balance = balance
        self.player_count = player_count
        self.state = state
        super().__init__(
            "Upkeep not needed: balance={balance}, players={players}, state={state}".format(
                balance=balance, players=player_count, state=int(state)
            )
        )


class UnknownRequest(RaffleError):
    """Fulfillment does not match the outstanding randomness request."""

    def __init__(self, request_id: int, message: Optional[str] = None) -> None:
        self.request_id = request_id
        super().__init__(message or f"Nonexistent or stale randomness request: {request_id}")


class OnlyCoordinatorCanFulfill(UnknownRequest):
    """Fulfillment was submitted by someone other than the coordinator."""

    def __init__(self, request_id: int, caller: Optional[str], coordinator: str) -> None:
        self.caller = caller
        self.coordinator = coordinator
        super().__init__(
            request_id,
            f"Only coordinator {coordinator} can fulfill, got caller {caller}",
        )


class PayoutFailed(RaffleError):
    """Transferring the pool to the winner failed; the round was rolled back."""

    def __init__(self, winner: str, amount: int) -> None:
        self.winner = winner
        self.amount = amount
        super().__init__(f"Transfer of {amount} to winner {winner} failed")


__all__ = [
    "RaffleError",
    "InsufficientPayment",
    "RoundNotOpen",
    "UpkeepNotReady",
    "UnknownRequest",
    "OnlyCoordinatorCanFulfill",
    "PayoutFailed",
]
