import os
import unittest
from unittest.mock import patch

import requests

from vrfraffle.chain.api import ChainClient
from vrfraffle.chain.utils import get_jwt_token, open_session


class DummyResponse:
    def __init__(self, json_data=None, content: bytes = b""):
        self._json = json_data
        if json_data is not None and not content:
            import json as _json

            content = _json.dumps(json_data).encode()
        self.content = content

    def json(self):
        return self._json

    def raise_for_status(self):
        pass


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "params": params,
                "json": json,
                "timeout": timeout,
            }
        )
        return self.response


@patch("vrfraffle.chain.api.get_jwt_token", return_value="jwt-token")
@patch("vrfraffle.chain.api.open_session")
class TestChainClient(unittest.TestCase):
    def _client(self, mock_open_session, response: DummyResponse):
        session = DummySession(response)
        mock_open_session.return_value = (session, "csrf-token")
        return ChainClient(base_fqdn="gateway.example.com", consumer="0xraffle"), session

    def test_init_sets_base_url_and_tokens(self, mock_open_session, mock_get_jwt):
        client, _ = self._client(mock_open_session, DummyResponse(json_data={}))
        self.assertEqual(client.base_url, "https://gateway.example.com")
        self.assertEqual(client.csrf, "csrf-token")
        self.assertEqual(client.jwt, "jwt-token")

    def test_request_random_words_returns_request_id(self, mock_open_session, mock_get_jwt):
        client, session = self._client(
            mock_open_session, DummyResponse(json_data={"request_id": "7"})
        )
        request_id = client.request_random_words(
            key_hash="0xgaslane",
            subscription_id=2**70,
            request_confirmations=3,
            callback_gas_limit=500000,
            num_words=1,
        )
        self.assertEqual(request_id, 7)
        call = session.calls[0]
        self.assertEqual(call["method"], "POST")
        self.assertEqual(call["url"], "https://gateway.example.com/api/v1/vrf/requests")
        self.assertEqual(call["json"]["subscription_id"], str(2**70))
        self.assertEqual(call["json"]["consumer"], "0xraffle")
        self.assertEqual(call["headers"]["X-CSRFTOKEN"], "csrf-token")
        self.assertEqual(call["headers"]["Authorization"], "Bearer jwt-token")

    def test_request_random_words_rejects_malformed_response(
        self, mock_open_session, mock_get_jwt
    ):
        client, _ = self._client(mock_open_session, DummyResponse(json_data={"ok": True}))
        with self.assertRaises(RuntimeError):
            client.request_random_words(
                key_hash="0x",
                subscription_id=1,
                request_confirmations=3,
                callback_gas_limit=1,
                num_words=1,
            )

    def test_transfer_returns_tx_hash(self, mock_open_session, mock_get_jwt):
        client, session = self._client(
            mock_open_session,
            DummyResponse(json_data={"status": "success", "tx_hash": "0xabc"}),
        )
        self.assertEqual(client.transfer("0xwinner", 10**16), "0xabc")
        self.assertEqual(
            session.calls[0]["json"], {"recipient": "0xwinner", "amount": str(10**16)}
        )

    def test_transfer_failure_raises(self, mock_open_session, mock_get_jwt):
        client, _ = self._client(
            mock_open_session,
            DummyResponse(json_data={"status": "error", "message": "insufficient funds"}),
        )
        with self.assertRaises(RuntimeError) as ctx:
            client.transfer("0xwinner", 1)
        self.assertIn("insufficient funds", str(ctx.exception))

    def test_get_request_converts_random_words(self, mock_open_session, mock_get_jwt):
        client, session = self._client(
            mock_open_session,
            DummyResponse(
                json_data={
                    "request_id": "7",
                    "status": "fulfilled",
                    "random_words": [str(2**255 + 3)],
                    "coordinator": "0xcoordinator",
                }
            ),
        )
        status = client.get_request(7)
        self.assertEqual(status["random_words"], [2**255 + 3])
        self.assertEqual(status["coordinator"], "0xcoordinator")
        call = session.calls[0]
        self.assertEqual(call["method"], "GET")
        self.assertEqual(call["url"], "https://gateway.example.com/api/v1/vrf/requests/7")
        self.assertEqual(call["headers"]["Authorization"], "Bearer jwt-token")

    def test_get_request_pending_has_no_words(self, mock_open_session, mock_get_jwt):
        client, _ = self._client(
            mock_open_session, DummyResponse(json_data={"status": "pending"})
        )
        self.assertEqual(client.get_request(7), {"status": "pending", "random_words": []})

    def test_get_request_rejects_malformed_response(self, mock_open_session, mock_get_jwt):
        client, _ = self._client(mock_open_session, DummyResponse(json_data={"ok": True}))
        with self.assertRaises(RuntimeError):
            client.get_request(7)

    def test_empty_body_returns_none(self, mock_open_session, mock_get_jwt):
        client, _ = self._client(mock_open_session, DummyResponse())
        self.assertIsNone(client._request("GET", "/api/v1/vrf/requests/1"))


class TestChainClientSetup(unittest.TestCase):
    @patch("vrfraffle.chain.api.open_session")
    @patch("vrfraffle.chain.api.load_dotenv")
    def test_requires_fqdn(self, mock_load_dotenv, mock_open_session):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                ChainClient()
        mock_open_session.assert_not_called()

    @patch("vrfraffle.chain.api.get_jwt_token")
    @patch("vrfraffle.chain.api.open_session")
    def test_init_reports_session_error(self, mock_open_session, mock_get_jwt):
        mock_open_session.side_effect = RuntimeError("network unreachable")
        with self.assertRaises(RuntimeError) as ctx:
            ChainClient(base_fqdn="gateway.example.com")
        self.assertIn("network unreachable", str(ctx.exception))
        mock_get_jwt.assert_not_called()


class GatewayResponse:
    def __init__(self, cookies=None, json_data=None, error=None):
        self.cookies = cookies or {}
        self._json = json_data
        self._error = error

    def raise_for_status(self):
        if self._error is not None:
            raise self._error

    def json(self):
        return self._json


class GatewaySession:
    def __init__(self, response: GatewayResponse):
        self.response = response
        self.cookies = dict(response.cookies)
        self.posts = []

    def get(self, url):
        return self.response

    def post(self, url, json=None):
        self.posts.append((url, json))
        return self.response


GATEWAY_ENV = {
    "CHAIN_BASE_FQDN": "gateway.example.com",
    "CHAIN_ADMIN_USERNAME": "operator",
    "CHAIN_ADMIN_PASSWORD": "secret",
}


class TestGatewayUtils(unittest.TestCase):
    @patch.dict(os.environ, GATEWAY_ENV, clear=True)
    @patch("vrfraffle.chain.utils.requests.Session")
    def test_open_session_returns_csrf_token(self, mock_session_cls):
        session = GatewaySession(GatewayResponse(cookies={"csrftoken": "abc"}))
        mock_session_cls.return_value = session
        self.assertEqual(open_session(), (session, "abc"))

    @patch.dict(os.environ, GATEWAY_ENV, clear=True)
    @patch("vrfraffle.chain.utils.requests.Session")
    def test_open_session_without_csrf_cookie_fails(self, mock_session_cls):
        mock_session_cls.return_value = GatewaySession(GatewayResponse(cookies={}))
        with self.assertRaises(RuntimeError):
            open_session()

    @patch.dict(os.environ, GATEWAY_ENV, clear=True)
    @patch("vrfraffle.chain.utils.requests.Session")
    def test_open_session_wraps_http_errors(self, mock_session_cls):
        error = requests.HTTPError("502 Bad Gateway")
        mock_session_cls.return_value = GatewaySession(GatewayResponse(error=error))
        with self.assertRaises(RuntimeError) as ctx:
            open_session()
        self.assertIs(ctx.exception.__cause__, error)

    @patch.dict(os.environ, {}, clear=True)
    def test_open_session_requires_fqdn(self):
        with self.assertRaises(RuntimeError) as ctx:
            open_session()
        self.assertIn("CHAIN_BASE_FQDN", str(ctx.exception))

    @patch.dict(os.environ, GATEWAY_ENV, clear=True)
    def test_get_jwt_token_logs_in_operator(self):
        session = GatewaySession(GatewayResponse(json_data={"access": "jwt"}))
        self.assertEqual(get_jwt_token(session), "jwt")  # type: ignore[arg-type]
        self.assertEqual(
            session.posts,
            [
                (
                    "https://gateway.example.com/api/v1/auth/jwt-token",
                    {"username": "operator", "password": "secret"},
                )
            ],
        )

    @patch.dict(os.environ, {"CHAIN_BASE_FQDN": "gateway.example.com"}, clear=True)
    def test_get_jwt_token_names_missing_credentials(self):
        session = GatewaySession(GatewayResponse(json_data={"access": "jwt"}))
        with self.assertRaises(RuntimeError) as ctx:
            get_jwt_token(session)  # type: ignore[arg-type]
        self.assertIn("CHAIN_ADMIN_USERNAME", str(ctx.exception))
        self.assertIn("CHAIN_ADMIN_PASSWORD", str(ctx.exception))
        self.assertEqual(session.posts, [])


if __name__ == "__main__":
    unittest.main()
