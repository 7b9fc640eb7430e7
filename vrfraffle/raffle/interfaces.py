"""Collaborators the raffle engine calls out to."""

from __future__ import annotations

from typing import Optional, Protocol


class RandomnessCoordinator(Protocol):
    """Oracle accepting randomness requests.

    The coordinator answers synchronously with a request id and later
    delivers the words by calling
    :meth:`~vrfraffle.raffle.engine.RaffleEngine.fulfill_random_words`.
    """

    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int: ...


class PayoutGateway(Protocol):
    """Moves the pooled funds to the round winner."""

    def transfer(self, recipient: str, amount: int) -> Optional[str]:
        """Send ``amount`` to ``recipient``; return a transaction reference.

        Implementations raise on failure.
        """
        ...


__all__ = ["RandomnessCoordinator", "PayoutGateway"]
