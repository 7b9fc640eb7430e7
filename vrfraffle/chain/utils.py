import os
import logging
import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

CSRF_COOKIE = "csrftoken"
JWT_LOGIN_PATH = "/api/v1/auth/jwt-token"


def _required_env(*names: str) -> list[str]:
    values = [os.environ.get(name) for name in names]
    missing = [name for name, value in zip(names, values) if not value]
    if missing:
        raise RuntimeError(
            "Raffle gateway is not configured; set " + ", ".join(f"'{m}'" for m in missing)
        )
    return values  # type: ignore[return-value]


def _gateway_url() -> str:
    (fqdn,) = _required_env("CHAIN_BASE_FQDN")
    return "https://" + fqdn


def open_session():
    """Open a session against the gateway that fronts the raffle's chain.

    The gateway hands out its CSRF token as a cookie on the landing page;
    every state-changing call of :class:`~vrfraffle.chain.api.ChainClient`
    (randomness requests, prize transfers) echoes it back.

    Returns
    -------
    tuple[requests.Session, str]
        The session carrying the gateway cookies, and the CSRF token.

    Raises
    ------
    RuntimeError
        If ``CHAIN_BASE_FQDN`` is unset, the gateway is unreachable, or it
        sets no CSRF cookie.
    """
    url = _gateway_url()

    session = requests.Session()
    try:
        response = session.get(url)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.critical("Raffle gateway %s unreachable: %s", url, e)
        raise RuntimeError(f"Failed to establish session: {e}") from e

    csrf_token = response.cookies.get(CSRF_COOKIE) or session.cookies.get(CSRF_COOKIE)
    if not csrf_token:
        logger.critical("Raffle gateway %s did not set a CSRF cookie", url)
        raise RuntimeError("Gateway did not return a CSRF token")

    # cookie values stay out of the log
    logger.debug("Gateway session opened with %d cookies", len(session.cookies))
    return session, csrf_token


def get_jwt_token(session: requests.Session) -> str:
    """Log the raffle operator into the gateway and return its access token.

    The operator account is the one that owns the randomness subscription
    and the prize wallet, read from ``CHAIN_ADMIN_USERNAME`` and
    ``CHAIN_ADMIN_PASSWORD``.

    Raises
    ------
    RuntimeError
        If the gateway or operator credentials are not configured.
    requests.HTTPError
        If the login is refused.
    KeyError
        If the response payload does not include an ``"access"`` field.
    """
    username, password = _required_env("CHAIN_ADMIN_USERNAME", "CHAIN_ADMIN_PASSWORD")
    logger.debug("Logging in raffle operator %s", username)

    response = session.post(
        _gateway_url() + JWT_LOGIN_PATH,
        json={"username": username, "password": password},
    )
    response.raise_for_status()
    return response.json()["access"]
