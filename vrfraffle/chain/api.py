import os
from urllib.parse import urljoin
from dotenv import load_dotenv
from .utils import open_session, get_jwt_token
from typing import Any, Optional, Mapping


class ChainClient:
    """HTTP client for the chain gateway.

    Implements both collaborators of the raffle engine: the randomness
    coordinator (:meth:`request_random_words`) and the payout gateway
    (:meth:`transfer`).
    """

    def __init__(
        self,
        base_fqdn: Optional[str] = None,
        timeout: int = 45,
        consumer: Optional[str] = None,
    ):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("CHAIN_BASE_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'CHAIN_BASE_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        session_info = open_session()
        if not session_info or len(session_info) != 2:
            raise ValueError("open_session() must return (session, csrf_token)")
        self.session, self.csrf = session_info
        self.jwt = get_jwt_token(self.session)
        self.timeout = timeout
        # address the coordinator calls back with fulfillments
        self.consumer = consumer or os.getenv("RAFFLE_CONSUMER_ADDRESS")

    # -------- headers --------
    @property
    def public_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json"}

    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self.jwt}"}

    @property
    def auth_csrf_headers(self) -> Mapping[str, str]:
        return {**self.auth_headers, "X-CSRFTOKEN": self.csrf}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            headers=headers or self.public_headers,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- randomness coordinator --------
    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        """Submit a randomness request and return the coordinator's request id.

        uint256 values travel as decimal strings so that JSON parsers on
        either side keep them exact.
        """
        response = self._request(
            "POST",
            "/api/v1/vrf/requests",
            headers=self.auth_csrf_headers,
            json={
                "key_hash": key_hash,
                "subscription_id": str(subscription_id),
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "num_words": num_words,
                "consumer": self.consumer,
            },
        )
        if not isinstance(response, dict) or response.get("request_id") is None:
            raise RuntimeError(f"Unexpected randomness request response: {response!r}")
        return int(response["request_id"])

    def get_request(self, request_id: int) -> dict:
        """Return the coordinator's view of ``request_id``.

        The gateway answers with ``status`` (``"pending"`` or
        ``"fulfilled"``) and, once fulfilled, ``random_words`` as decimal
        strings plus the ``coordinator`` address that delivered them. The
        words are converted back to ``int`` here.
        """
        response = self._request(
            "GET",
            f"/api/v1/vrf/requests/{request_id}",
            headers=self.auth_headers,
        )
        if not isinstance(response, dict) or "status" not in response:
            raise RuntimeError(f"Unexpected randomness status response: {response!r}")
        words = response.get("random_words") or []
        return {**response, "random_words": [int(word) for word in words]}

    # -------- payout gateway --------
    def transfer(self, recipient: str, amount: int) -> Optional[str]:
        """Send ``amount`` wei from the raffle wallet to ``recipient``.

        Returns
        -------
        Optional[str]
            Transaction hash reported by the gateway, if any.

        Raises
        ------
        RuntimeError
            If the gateway reports anything other than success.
        requests.HTTPError
            If the HTTP request fails.
        """
        response = self._request(
            "POST",
            "/api/v1/wallet/transfer",
            headers=self.auth_csrf_headers,
            json={"recipient": recipient, "amount": str(amount)},
        )
        if not isinstance(response, dict):
            raise RuntimeError(f"Unexpected transfer response: {response!r}")
        if response.get("status") != "success":
            message = response.get("message")
            raise RuntimeError("Transfer failed" + (f": {message}" if message else "."))
        return response.get("tx_hash")
