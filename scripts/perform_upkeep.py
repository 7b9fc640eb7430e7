"""Run one keeper tick for a raffle stored in the configured database.

Usage: ``python scripts/perform_upkeep.py RAFFLE_ID``. Scheduling repeated
ticks is left to cron or an external keeper network.
"""

from __future__ import annotations

import logging
import sys

from vrfraffle.chain.api import ChainClient
from vrfraffle.db.engine import get_sessionmaker, make_engine
from vrfraffle.models import Raffle
from vrfraffle.workflows import run_upkeep

logger = logging.getLogger("vrfraffle.scripts.perform_upkeep")


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print(f"usage: {argv[0]} RAFFLE_ID", file=sys.stderr)
        return 2
    raffle_id = int(argv[1])

    Session = get_sessionmaker(make_engine())
    client = ChainClient()
    with Session.begin() as session:
        raffle = session.get(Raffle, raffle_id)
        if raffle is None:
            print(f"Raffle {raffle_id} not found", file=sys.stderr)
            return 1
        request_id = run_upkeep(session, raffle, client)

    if request_id is None:
        logger.info("Raffle %s: upkeep not needed", raffle_id)
    else:
        logger.info("Raffle %s: draw requested with request id %s", raffle_id, request_id)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)-5.5s [%(name)s] %(message)s")
    raise SystemExit(main(sys.argv))
