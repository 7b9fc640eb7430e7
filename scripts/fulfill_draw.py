"""Resolve a raffle's outstanding draw once the gateway reports it fulfilled.

Usage: ``python scripts/fulfill_draw.py RAFFLE_ID``. Run it after
``perform_upkeep.py`` until the round resolves; it is also how a round
whose payout failed is retried.
"""

from __future__ import annotations

import logging
import sys

from vrfraffle.chain.api import ChainClient
from vrfraffle.db.engine import get_sessionmaker, make_engine
from vrfraffle.models import Raffle
from vrfraffle.raffle import PayoutFailed
from vrfraffle.workflows import settle_draw

logger = logging.getLogger("vrfraffle.scripts.fulfill_draw")


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print(f"usage: {argv[0]} RAFFLE_ID", file=sys.stderr)
        return 2
    raffle_id = int(argv[1])

    Session = get_sessionmaker(make_engine())
    client = ChainClient()
    try:
        with Session.begin() as session:
            raffle = session.get(Raffle, raffle_id)
            if raffle is None:
                print(f"Raffle {raffle_id} not found", file=sys.stderr)
                return 1
            result = settle_draw(session, raffle, client)
            summary = None if result is None else (result.round_number, result.winner)
    except PayoutFailed as exc:
        logger.error("Raffle %s: %s; run again to retry", raffle_id, exc)
        return 1

    if summary is None:
        logger.info("Raffle %s: nothing to resolve yet", raffle_id)
    else:
        logger.info("Raffle %s: round %s won by %s", raffle_id, *summary)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5.5s [%(name)s] %(message)s")
    raise SystemExit(main(sys.argv))
