import unittest
from typing import Optional
from unittest.mock import patch

from vrfraffle.chain.api import ChainClient
from vrfraffle.config import RaffleSettings
from vrfraffle.db.engine import get_sessionmaker, make_engine
from vrfraffle.models import Base, Raffle, RaffleState
from vrfraffle.raffle import PayoutFailed, RaffleEngine, UnknownRequest
from vrfraffle.workflows import deploy_raffle, fulfill_draw, run_upkeep, settle_draw


class DummyCoordinator:
    def __init__(self):
        self.issued: list[int] = []

    def request_random_words(self, **kwargs) -> int:
        request_id = 100 + len(self.issued)
        self.issued.append(request_id)
        return request_id


class DummyPayout:
    def __init__(self):
        self.transfers: list[tuple[str, int]] = []

    def transfer(self, recipient: str, amount: int) -> Optional[str]:
        self.transfers.append((recipient, amount))
        return None


class GatewayReply:
    def __init__(self, json_data):
        self._json = json_data
        self.content = b"{}"

    def json(self):
        return self._json

    def raise_for_status(self):
        pass


class RoutingGatewaySession:
    """Answers ChainClient requests from a ``(method, path) -> json`` table."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.calls: list[tuple[str, str, Optional[dict]]] = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        path = url.split("gateway.example.com", 1)[1]
        self.calls.append((method, path, json))
        return GatewayReply(self.routes[(method, path)])


class RaffleWorkflowTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        self.now = 1_000
        self.settings = RaffleSettings(
            chain_id=31337,
            network="hardhat",
            entrance_fee=10**16,
            interval=30,
            gas_lane="0xgaslane",
            subscription_id=1,
            callback_gas_limit=500000,
            vrf_coordinator="0xcoordinator",
        )

    def tearDown(self):
        self.engine.dispose()

    def clock(self) -> int:
        return self.now


class WorkflowTests(RaffleWorkflowTestCase):
    def test_deploy_raffle_persists_open_raffle(self):
        with self.Session.begin() as session:
            raffle = deploy_raffle(session, self.settings, clock=self.clock)
            self.assertIsNotNone(raffle.id)
            self.assertEqual(raffle.state, RaffleState.OPEN)
            self.assertEqual(raffle.entrance_fee, 10**16)
            self.assertEqual(raffle.interval, 30)
            self.assertEqual(raffle.last_timestamp, 1_000)
            self.assertEqual(raffle.coordinator_address, "0xcoordinator")
            self.assertEqual(raffle.name, "hardhat")
            raffle_id = raffle.id

        with self.Session() as session:
            loaded = session.get(Raffle, raffle_id)
            assert loaded is not None
            self.assertEqual(loaded.gas_lane, "0xgaslane")
            self.assertEqual(loaded.number_of_players(session), 0)

    def test_run_upkeep_is_idle_until_ready(self):
        coordinator = DummyCoordinator()
        with self.Session.begin() as session:
            raffle = deploy_raffle(session, self.settings, clock=self.clock)
            self.assertIsNone(run_upkeep(session, raffle, coordinator, clock=self.clock))

            RaffleEngine(session, raffle, clock=self.clock).enter("alice", 10**16)
            self.assertIsNone(run_upkeep(session, raffle, coordinator, clock=self.clock))

            self.now += 31
            request_id = run_upkeep(session, raffle, coordinator, clock=self.clock)
            self.assertEqual(request_id, 100)
            self.assertEqual(raffle.state, RaffleState.CALCULATING)

            # already calculating: nothing more to do
            self.assertIsNone(run_upkeep(session, raffle, coordinator, clock=self.clock))
            self.assertEqual(coordinator.issued, [100])

    def test_fulfill_draw_pays_winner(self):
        coordinator = DummyCoordinator()
        payout = DummyPayout()
        with self.Session.begin() as session:
            raffle = deploy_raffle(session, self.settings, clock=self.clock)
            engine = RaffleEngine(session, raffle, clock=self.clock)
            for player in ("alice", "bob"):
                engine.enter(player, 10**16)
            self.now += 31
            request_id = run_upkeep(session, raffle, coordinator, clock=self.clock)
            assert request_id is not None

            with self.assertRaises(UnknownRequest):
                fulfill_draw(
                    session, raffle, request_id, [5], payout, caller="0xsomeone"
                )

            result = fulfill_draw(
                session,
                raffle,
                request_id,
                [5],
                payout,
                caller="0xcoordinator",
                clock=self.clock,
            )
            self.assertEqual(result.winner, "bob")
            self.assertIsNone(result.payout_reference)
            self.assertEqual(payout.transfers, [("bob", 2 * 10**16)])
            self.assertEqual(raffle.state, RaffleState.OPEN)
            self.assertEqual(raffle.last_timestamp, self.now)


REQUEST_PATH = "/api/v1/vrf/requests/100"
TRANSFER_PATH = "/api/v1/wallet/transfer"


@patch("vrfraffle.chain.api.get_jwt_token", return_value="jwt-token")
@patch("vrfraffle.chain.api.open_session")
class SettleDrawTests(RaffleWorkflowTestCase):
    def _client(self, mock_open_session, routes: dict):
        session = RoutingGatewaySession(routes)
        mock_open_session.return_value = (session, "csrf-token")
        return ChainClient(base_fqdn="gateway.example.com"), session

    def _calculating_raffle(self, session) -> Raffle:
        raffle = deploy_raffle(session, self.settings, clock=self.clock)
        engine = RaffleEngine(session, raffle, clock=self.clock)
        for player in ("alice", "bob"):
            engine.enter(player, 10**16)
        self.now += 31
        run_upkeep(session, raffle, DummyCoordinator(), clock=self.clock)
        return raffle

    def test_nothing_outstanding(self, mock_open_session, mock_get_jwt):
        client, gateway = self._client(mock_open_session, {})
        with self.Session.begin() as session:
            raffle = deploy_raffle(session, self.settings, clock=self.clock)
            self.assertIsNone(settle_draw(session, raffle, client, clock=self.clock))
        self.assertEqual(gateway.calls, [])

    def test_waits_while_request_pending(self, mock_open_session, mock_get_jwt):
        client, gateway = self._client(
            mock_open_session, {("GET", REQUEST_PATH): {"status": "pending"}}
        )
        with self.Session.begin() as session:
            raffle = self._calculating_raffle(session)
            self.assertIsNone(settle_draw(session, raffle, client, clock=self.clock))
            self.assertEqual(raffle.state, RaffleState.CALCULATING)
        self.assertEqual(gateway.calls, [("GET", REQUEST_PATH, None)])

    def test_resolves_fulfilled_request_and_pays_winner(
        self, mock_open_session, mock_get_jwt
    ):
        client, gateway = self._client(
            mock_open_session,
            {
                ("GET", REQUEST_PATH): {
                    "status": "fulfilled",
                    "random_words": ["5"],
                    "coordinator": "0xcoordinator",
                },
                ("POST", TRANSFER_PATH): {"status": "success", "tx_hash": "0xabc"},
            },
        )
        with self.Session.begin() as session:
            raffle = self._calculating_raffle(session)
            result = settle_draw(session, raffle, client, clock=self.clock)
            assert result is not None
            self.assertEqual(result.winner, "bob")
            self.assertEqual(result.payout_reference, "0xabc")
            self.assertEqual(raffle.state, RaffleState.OPEN)
        self.assertEqual(
            gateway.calls[-1],
            ("POST", TRANSFER_PATH, {"recipient": "bob", "amount": str(2 * 10**16)}),
        )

    def test_rejects_words_from_another_coordinator(
        self, mock_open_session, mock_get_jwt
    ):
        client, gateway = self._client(
            mock_open_session,
            {
                ("GET", REQUEST_PATH): {
                    "status": "fulfilled",
                    "random_words": ["5"],
                    "coordinator": "0xrogue",
                },
            },
        )
        with self.Session.begin() as session:
            raffle = self._calculating_raffle(session)
            with self.assertRaises(UnknownRequest):
                settle_draw(session, raffle, client, clock=self.clock)
            self.assertEqual(raffle.state, RaffleState.CALCULATING)
        self.assertNotIn("POST", [method for method, _, _ in gateway.calls])

    def test_failed_payout_is_retried(self, mock_open_session, mock_get_jwt):
        routes = {
            ("GET", REQUEST_PATH): {
                "status": "fulfilled",
                "random_words": ["4"],
                "coordinator": "0xcoordinator",
            },
            ("POST", TRANSFER_PATH): {"status": "error", "message": "wallet empty"},
        }
        client, _ = self._client(mock_open_session, routes)
        with self.Session.begin() as session:
            raffle = self._calculating_raffle(session)
            with self.assertRaises(PayoutFailed):
                settle_draw(session, raffle, client, clock=self.clock)
            self.assertEqual(raffle.state, RaffleState.CALCULATING)
            self.assertEqual(raffle.pooled_balance, 2 * 10**16)

            routes[("POST", TRANSFER_PATH)] = {"status": "success", "tx_hash": "0xdef"}
            result = settle_draw(session, raffle, client, clock=self.clock)
            assert result is not None
            self.assertEqual(result.winner, "alice")
            self.assertEqual(raffle.pooled_balance, 0)


if __name__ == "__main__":
    unittest.main()
