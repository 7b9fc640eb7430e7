"""Per-network raffle parameters and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from dotenv import load_dotenv

WEI_PER_ETH = 10**18

# Key hash used by the coordinator on both networks.
DEFAULT_GAS_LANE = "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c"

DEVELOPMENT_CHAINS = ("hardhat", "localhost")

NETWORK_CONFIG: dict[int, dict] = {
    11155111: {
        "name": "sepolia",
        "vrf_coordinator": "0x8103B0A8A00be2DDC778e6e7eaa21791Cd364625",
        "entrance_fee": "0.01",
        "gas_lane": DEFAULT_GAS_LANE,
        "subscription_id": None,
        "callback_gas_limit": 500000,
        "interval": 30,
    },
    31337: {
        "name": "hardhat",
        "vrf_coordinator": None,
        "entrance_fee": "0.01",
        "gas_lane": DEFAULT_GAS_LANE,
        "subscription_id": 1,
        "callback_gas_limit": 500000,
        "interval": 30,
    },
}


def eth_to_wei(amount: Union[str, int, Decimal]) -> int:
    """Convert an ETH amount (``"0.01"``) into integer wei.

    Raises
    ------
    ValueError
        If ``amount`` is not a number or has more than 18 decimals.
    """

    try:
        value = Decimal(str(amount)) * WEI_PER_ETH
    except InvalidOperation as exc:
        raise ValueError(f"Invalid ETH amount: {amount!r}") from exc
    if value != value.to_integral_value():
        raise ValueError(f"ETH amount has more than 18 decimals: {amount!r}")
    return int(value)


@dataclass(frozen=True)
class RaffleSettings:
    """Immutable construction parameters for a raffle.

    Attributes
    ----------
    chain_id : int
        Chain the raffle is configured for.
    network : str
        Human readable network name.
    entrance_fee : int
        Entrance fee in wei.
    interval : int
        Seconds between draws.
    gas_lane : str
        Oracle key hash.
    subscription_id : int
        Oracle subscription id.
    callback_gas_limit : int
        Resource budget for the fulfillment callback.
    vrf_coordinator : Optional[str]
        Coordinator address, ``None`` on development chains.
    """

    chain_id: int
    network: str
    entrance_fee: int
    interval: int
    gas_lane: str
    subscription_id: int
    callback_gas_limit: int
    vrf_coordinator: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.network in DEVELOPMENT_CHAINS


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


def load_raffle_settings(chain_id: Optional[int] = None) -> RaffleSettings:
    """Build :class:`RaffleSettings` for ``chain_id`` with ``RAFFLE_*`` overrides.

    ``chain_id`` defaults to ``RAFFLE_CHAIN_ID`` and then to the local
    development chain (31337).

    Raises
    ------
    ValueError
        If the chain is unknown or a resulting parameter is invalid.
    """

    load_dotenv()
    if chain_id is None:
        chain_id = _env_int("RAFFLE_CHAIN_ID") or 31337
    if chain_id not in NETWORK_CONFIG:
        raise ValueError(f"No network configuration for chain id {chain_id}")
    network = NETWORK_CONFIG[chain_id]

    entrance_fee = _env_int("RAFFLE_ENTRANCE_FEE_WEI")
    if entrance_fee is None:
        entrance_fee = eth_to_wei(network["entrance_fee"])
    interval = _env_int("RAFFLE_INTERVAL")
    if interval is None:
        interval = network["interval"]
    subscription_id = _env_int("RAFFLE_SUBSCRIPTION_ID")
    if subscription_id is None:
        subscription_id = network["subscription_id"]
    callback_gas_limit = _env_int("RAFFLE_CALLBACK_GAS_LIMIT")
    if callback_gas_limit is None:
        callback_gas_limit = network["callback_gas_limit"]
    gas_lane = os.getenv("RAFFLE_GAS_LANE") or network["gas_lane"]
    vrf_coordinator = os.getenv("RAFFLE_VRF_COORDINATOR") or network["vrf_coordinator"]

    if entrance_fee <= 0:
        raise ValueError("Entrance fee must be positive")
    if interval < 0:
        raise ValueError("Interval must be non-negative")
    if callback_gas_limit <= 0:
        raise ValueError("Callback gas limit must be positive")
    if subscription_id is None:
        raise ValueError(
            f"A subscription id is required for {network['name']}; set RAFFLE_SUBSCRIPTION_ID"
        )
    if network["name"] not in DEVELOPMENT_CHAINS and not vrf_coordinator:
        raise ValueError(f"A VRF coordinator address is required for {network['name']}")

    return RaffleSettings(
        chain_id=chain_id,
        network=network["name"],
        entrance_fee=entrance_fee,
        interval=interval,
        gas_lane=gas_lane,
        subscription_id=subscription_id,
        callback_gas_limit=callback_gas_limit,
        vrf_coordinator=vrf_coordinator,
    )


__all__ = [
    "DEVELOPMENT_CHAINS",
    "NETWORK_CONFIG",
    "RaffleSettings",
    "eth_to_wei",
    "load_raffle_settings",
]
