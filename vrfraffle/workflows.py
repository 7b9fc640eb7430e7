import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from .config import RaffleSettings
from .models import Raffle, RaffleState, RoundResult
from .raffle.engine import RaffleEngine, unix_now

if TYPE_CHECKING:
    from .chain.api import ChainClient
    from .raffle.interfaces import PayoutGateway, RandomnessCoordinator

logger = logging.getLogger(__name__)


def deploy_raffle(
    session: Session,
    settings: RaffleSettings,
    *,
    clock: Optional[Callable[[], int]] = None,
    name: Optional[str] = None,
) -> Raffle:
    """Create a new open raffle from ``settings`` and persist it.

    The raffle's ``last_timestamp`` is seeded with the current time, so the
    first draw becomes possible once ``settings.interval`` has elapsed.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    settings : RaffleSettings
        Construction parameters, usually from
        :func:`~vrfraffle.config.load_raffle_settings`.
    clock : Optional[Callable[[], int]], default: None
        Source of unix seconds. Defaults to the system clock.
    name : Optional[str], default: None
        Label stored on the raffle. Defaults to the network name.

    Returns
    -------
    Raffle
        The persisted raffle with a populated ``id``.
    """

    now = (clock or unix_now)()
    raffle = Raffle(
        entrance_fee=settings.entrance_fee,
        interval=settings.interval,
        gas_lane=settings.gas_lane,
        subscription_id=settings.subscription_id,
        callback_gas_limit=settings.callback_gas_limit,
        coordinator_address=settings.vrf_coordinator,
        last_timestamp=now,
        name=name or settings.network,
    )
    session.add(raffle)
    session.flush()
    return raffle


def run_upkeep(
    session: Session,
    raffle: Raffle,
    coordinator: "RandomnessCoordinator",
    *,
    check_data: bytes = b"",
    clock: Optional[Callable[[], int]] = None,
) -> Optional[int]:
    """Run a single keeper tick for ``raffle``.

    The raffle is only asked to request randomness when
    :meth:`RaffleEngine.check_upkeep` reports it is ready, so an idle tick
    is not an error.

    Returns
    -------
    Optional[int]
        The outstanding request id when a draw was requested, else ``None``.
    """

    engine = RaffleEngine(session, raffle, coordinator=coordinator, clock=clock)
    check = engine.check_upkeep(check_data)
    if not check.upkeep_needed:
        return None
    return engine.perform_upkeep(check.perform_data)


def fulfill_draw(
    session: Session,
    raffle: Raffle,
    request_id: int,
    random_words: Sequence[int],
    payout: "PayoutGateway",
    *,
    caller: Optional[str] = None,
    clock: Optional[Callable[[], int]] = None,
) -> RoundResult:
    """Deliver the coordinator's random words to ``raffle`` and pay the winner.

    This function wraps :meth:`RaffleEngine.fulfill_random_words`; see there
    for the raised errors.
    """

    engine = RaffleEngine(session, raffle, payout=payout, clock=clock)
    result = engine.fulfill_random_words(request_id, random_words, caller=caller)
    session.flush()
    return result


def settle_draw(
    session: Session,
    raffle: Raffle,
    client: "ChainClient",
    *,
    clock: Optional[Callable[[], int]] = None,
) -> Optional[RoundResult]:
    """Resolve ``raffle``'s outstanding draw once the gateway has fulfilled it.

    The gateway is asked for the status of the outstanding request. When it
    reports ``fulfilled``, the round is resolved with the delivered words,
    the coordinator reported by the gateway as caller, and ``client`` as
    payout gateway. A round left CALCULATING by a failed payout is retried
    by calling this again.

    Returns
    -------
    Optional[RoundResult]
        The resolved round, or ``None`` when no draw is outstanding or the
        request is still pending.
    """

    request_id = raffle.outstanding_request_id
    if raffle.state != RaffleState.CALCULATING or request_id is None:
        logger.info("Raffle %s: no draw outstanding", raffle.id)
        return None

    status = client.get_request(request_id)
    if status["status"] != "fulfilled":
        logger.info(
            "Raffle %s: request %s still %s", raffle.id, request_id, status["status"]
        )
        return None

    return fulfill_draw(
        session,
        raffle,
        request_id,
        status["random_words"],
        client,
        caller=status.get("coordinator"),
        clock=clock,
    )
