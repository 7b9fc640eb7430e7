"""State machine driving a raffle through entry, draw request and payout."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import (
    InsufficientPayment,
    OnlyCoordinatorCanFulfill,
    PayoutFailed,
    RoundNotOpen,
    UnknownRequest,
    UpkeepNotReady,
)
from .interfaces import PayoutGateway, RandomnessCoordinator
from .selection import select_winner_index
from ..models import (
    RAFFLE_ENTER,
    REQUESTED_RAFFLE_WINNER,
    WINNER_PICKED,
    Raffle,
    RaffleEntry,
    RaffleLog,
    RaffleState,
    RandomnessRequest,
    RoundResult,
)

logger = logging.getLogger(__name__)


def unix_now() -> int:
    """Default clock: current unix time in whole seconds."""
    return int(time.time())


@dataclass(frozen=True)
class UpkeepCheck:
    """Answer of :meth:`RaffleEngine.check_upkeep`.

    Attributes
    ----------
    upkeep_needed : bool
        ``True`` only when the interval elapsed, the raffle is open, and the
        round holds both a balance and at least one player.
    perform_data : Any
        Opaque value echoed back from ``check_data``.
    balance : int
        Pool balance observed by the check.
    player_count : int
        Tickets observed by the check.
    state : RaffleState
        Raffle state observed by the check.
    """

    upkeep_needed: bool
    perform_data: Any
    balance: int
    player_count: int
    state: RaffleState

    def __iter__(self):
        # allows ``upkeep_needed, perform_data = engine.check_upkeep()``
        return iter((self.upkeep_needed, self.perform_data))


class RaffleEngine:
    """Engine that applies raffle operations to a persisted :class:`Raffle`.

    Every mutating operation runs inside ``Session.begin_nested()`` so that it
    either applies completely or leaves no trace. The caller owns the outer
    transaction and decides when to commit.
    """

    def __init__(
        self,
        session: Session,
        raffle: Raffle,
        *,
        coordinator: Optional[RandomnessCoordinator] = None,
        payout: Optional[PayoutGateway] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """Bind an engine to ``raffle``.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        raffle : Raffle
            Persisted raffle to operate on.
        coordinator : Optional[RandomnessCoordinator], default: None
            Oracle used by :meth:`perform_upkeep`.
        payout : Optional[PayoutGateway], default: None
            Gateway used by :meth:`fulfill_random_words` to pay the winner.
        clock : Optional[Callable[[], int]], default: None
            Source of unix seconds. Defaults to the system clock.
        """

        if raffle.id is None:
            raise ValueError("Raffle must be persisted before it can be operated")
        self._session = session
        self.raffle = raffle
        self._coordinator = coordinator
        self._payout = payout
        self._clock = clock or unix_now

    # -------- entry ledger --------
    def enter(self, player: str, amount: int) -> RaffleEntry:
        """Buy one ticket for ``player`` in the current round.

        Raises
        ------
        TypeError
            If ``amount`` is not an integer number of wei.
        InsufficientPayment
            If ``amount`` is below the entrance fee.
        RoundNotOpen
            If a draw is outstanding.
        """

        if not player:
            raise ValueError("player must not be empty")
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TypeError("amount must be an integer number of wei")
        raffle = self._lock_raffle()
        if amount < raffle.entrance_fee:
            logger.warning(
                "Raffle %s rejected entry from %s: paid %s < fee %s",
                raffle.id, player, amount, raffle.entrance_fee,
            )
            raise InsufficientPayment(amount, raffle.entrance_fee)
        if raffle.state != RaffleState.OPEN:
            logger.warning("Raffle %s rejected entry from %s: not open", raffle.id, player)
            raise RoundNotOpen(raffle.state)

        with self._session.begin_nested():
            entry = RaffleEntry(
                raffle_id=raffle.id,
                round_number=raffle.round_number,
                position=raffle.number_of_players(self._session),
                player=player,
                amount=amount,
            )
            self._session.add(entry)
            raffle.pooled_balance = raffle.pooled_balance + amount
            self._emit(RAFFLE_ENTER, {"player": player})
            self._session.flush()

        logger.info(
            "Raffle %s round %s: %s entered with %s (ticket %s)",
            raffle.id, raffle.round_number, player, amount, entry.position,
        )
        return entry

    # -------- upkeep evaluator --------
    def check_upkeep(self, check_data: Any = b"") -> UpkeepCheck:
        """Report whether the current round is ready for a draw.

        The check is read-only: it never flushes or writes, and may be
        polled any number of times.
        """

        raffle = self.raffle
        with self._session.no_autoflush:
            player_count = raffle.number_of_players(self._session)
        balance = raffle.pooled_balance
        state = raffle.state

        time_passed = (self._clock() - raffle.last_timestamp) > raffle.interval
        is_open = state == RaffleState.OPEN
        has_balance = balance > 0
        has_players = player_count > 0

        return UpkeepCheck(
            upkeep_needed=time_passed and is_open and has_balance and has_players,
            perform_data=check_data,
            balance=balance,
            player_count=player_count,
            state=state,
        )

    # -------- randomness requester --------
    def perform_upkeep(self, perform_data: Any = b"") -> int:
        """Close entries and request a random word from the coordinator.

        Returns
        -------
        int
            Request id issued by the coordinator, now outstanding.

        Raises
        ------
        UpkeepNotReady
            If :meth:`check_upkeep` reports the round is not ready.
        """

        if self._coordinator is None:
            raise ValueError("A randomness coordinator is required to request a draw")

        self._lock_raffle()
        check = self.check_upkeep(perform_data)
        if not check.upkeep_needed:
            logger.warning(
                "Raffle %s upkeep not needed: balance=%s players=%s state=%s",
                self.raffle.id, check.balance, check.player_count, check.state.name,
            )
            raise UpkeepNotReady(check.balance, check.player_count, check.state)

        raffle = self.raffle
        with self._session.begin_nested():
            # Entries are refused from here on, before control leaves for the oracle.
            raffle.state = RaffleState.CALCULATING
            self._session.flush()

            request_id = self._coordinator.request_random_words(
                key_hash=raffle.gas_lane,
                subscription_id=raffle.subscription_id,
                request_confirmations=raffle.request_confirmations,
                callback_gas_limit=raffle.callback_gas_limit,
                num_words=raffle.num_words,
            )
            if self._find_request(request_id) is not None:
                raise ValueError(f"Coordinator reused request id {request_id}")

            raffle.outstanding_request_id = request_id
            self._session.add(
                RandomnessRequest(
                    raffle_id=raffle.id,
                    request_id=request_id,
                    round_number=raffle.round_number,
                    status="pending",
                    num_words=raffle.num_words,
                    requested_at=self._clock(),
                )
            )
            self._emit(REQUESTED_RAFFLE_WINNER, {"request_id": str(request_id)})
            self._session.flush()

        logger.info(
            "Raffle %s round %s: requested randomness, request id %s",
            raffle.id, raffle.round_number, request_id,
        )
        return request_id

    # -------- winner selector --------
    def fulfill_random_words(
        self,
        request_id: int,
        random_words: Sequence[int],
        *,
        caller: Optional[str] = None,
    ) -> RoundResult:
        """Resolve the outstanding draw with the oracle's random words.

        Internal bookkeeping (winner, round reset, pool, timestamp, state) is
        applied and flushed before the payout is attempted. When the payout
        raises, the savepoint is rolled back and the raffle stays
        CALCULATING with the same outstanding request, so the fulfillment
        can be retried.

        Parameters
        ----------
        request_id : int
            Id the coordinator returned from the matching request.
        random_words : Sequence[int]
            Words delivered by the coordinator; only the first is used.
        caller : Optional[str], default: None
            Identity submitting the fulfillment. Must equal the raffle's
            ``coordinator_address`` when one is configured.

        Returns
        -------
        RoundResult
            Persisted record of the resolved round.

        Raises
        ------
        OnlyCoordinatorCanFulfill
            If the raffle has a coordinator address and ``caller`` is missing
            or differs from it.
        UnknownRequest
            If no draw is outstanding or ``request_id`` does not match it.
        PayoutFailed
            If the transfer to the winner fails.
        """

        if self._payout is None:
            raise ValueError("A payout gateway is required to resolve a draw")

        raffle = self._lock_raffle()
        if raffle.coordinator_address is not None and caller != raffle.coordinator_address:
            logger.warning(
                "Raffle %s rejected fulfillment of %s from non-coordinator %s",
                raffle.id, request_id, caller,
            )
            raise OnlyCoordinatorCanFulfill(request_id, caller, raffle.coordinator_address)
        if (
            raffle.state != RaffleState.CALCULATING
            or raffle.outstanding_request_id is None
            or request_id != raffle.outstanding_request_id
        ):
            logger.warning(
                "Raffle %s rejected fulfillment of unknown request %s (outstanding: %s)",
                raffle.id, request_id, raffle.outstanding_request_id,
            )
            raise UnknownRequest(request_id)
        if not random_words:
            raise ValueError("At least one random word is required")

        players = raffle.players(self._session)
        random_word = random_words[0]
        winner_index = select_winner_index(random_word, len(players))
        winner = players[winner_index]
        prize = raffle.pooled_balance
        round_number = raffle.round_number
        request = self._find_request(request_id)
        now = self._clock()

        with self._session.begin_nested():
            raffle.recent_winner = winner
            raffle.round_number = round_number + 1
            raffle.pooled_balance = 0
            raffle.last_timestamp = now
            raffle.state = RaffleState.OPEN
            raffle.outstanding_request_id = None
            if request is not None:
                request.status = "fulfilled"
                request.random_word = random_word
                request.fulfilled_at = now
            self._session.flush()

            try:
                reference = self._payout.transfer(winner, prize)
            except Exception as exc:
                logger.error(
                    "Raffle %s round %s: payout of %s to %s failed: %s",
                    raffle.id, round_number, prize, winner, exc,
                )
                raise PayoutFailed(winner, prize) from exc

            result = RoundResult(
                raffle_id=raffle.id,
                round_number=round_number,
                winner=winner,
                prize=prize,
                participant_count=len(players),
                request_id=request_id,
                random_word=random_word,
                winner_index=winner_index,
                payout_reference=reference,
                resolved_at=now,
            )
            self._session.add(result)
            self._emit(WINNER_PICKED, {"winner": winner}, round_number=round_number)
            self._session.flush()

        logger.info(
            "Raffle %s round %s: winner %s (index %s of %s) paid %s",
            raffle.id, round_number, winner, winner_index, len(players), prize,
        )
        return result

    # -------- query accessors --------
    def get_raffle_state(self) -> RaffleState:
        return self.raffle.state

    def get_entrance_fee(self) -> int:
        return self.raffle.entrance_fee

    def get_interval(self) -> int:
        return self.raffle.interval

    def get_number_of_players(self) -> int:
        return self.raffle.number_of_players(self._session)

    def get_player(self, index: int) -> str:
        return self.raffle.get_player(self._session, index)

    def get_players(self) -> list[str]:
        return self.raffle.players(self._session)

    def get_pool_balance(self) -> int:
        return self.raffle.pooled_balance

    def get_recent_winner(self) -> Optional[str]:
        return self.raffle.recent_winner

    def get_latest_timestamp(self) -> int:
        return self.raffle.last_timestamp

    def get_num_words(self) -> int:
        return self.raffle.num_words

    def get_request_confirmations(self) -> int:
        return self.raffle.request_confirmations

    def round_results(self) -> list[RoundResult]:
        """Return resolved rounds, oldest first."""

        stmt = (
            select(RoundResult)
            .where(RoundResult.raffle_id == self.raffle.id)
            .order_by(RoundResult.round_number.asc())
        )
        return list(self._session.scalars(stmt).all())

    def logs(self, name: Optional[str] = None) -> list[RaffleLog]:
        """Return notifications emitted by this raffle in emission order."""

        stmt = select(RaffleLog).where(RaffleLog.raffle_id == self.raffle.id)
        if name is not None:
            stmt = stmt.where(RaffleLog.name == name)
        return list(self._session.scalars(stmt.order_by(RaffleLog.id.asc())).all())

    # -------- helpers --------
    def _lock_raffle(self) -> Raffle:
        """Re-read the raffle row under ``SELECT ... FOR UPDATE``.

        Pending changes are flushed first so the refresh does not discard
        them. The lock is held until the caller's transaction ends; SQLite
        ignores ``FOR UPDATE`` and serializes writers on the database file.
        """

        self._session.flush()
        self._session.refresh(self.raffle, with_for_update=True)
        return self.raffle

    def _find_request(self, request_id: int) -> Optional[RandomnessRequest]:
        return self._session.scalar(
            select(RandomnessRequest).where(
                RandomnessRequest.raffle_id == self.raffle.id,
                RandomnessRequest.request_id == request_id,
            )
        )

    def _emit(
        self, name: str, args: dict[str, Any], *, round_number: Optional[int] = None
    ) -> RaffleLog:
        log = RaffleLog(
            raffle_id=self.raffle.id,
            name=name,
            round_number=round_number if round_number is not None else self.raffle.round_number,
            args=args,
        )
        self._session.add(log)
        return log


__all__ = ["RaffleEngine", "UpkeepCheck", "unix_now"]
