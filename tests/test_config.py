import os
import unittest
from unittest.mock import patch

from vrfraffle.config import (
    DEFAULT_GAS_LANE,
    NETWORK_CONFIG,
    eth_to_wei,
    load_raffle_settings,
)


@patch("vrfraffle.config.load_dotenv")
class LoadRaffleSettingsTests(unittest.TestCase):
    def test_defaults_to_local_development_chain(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_raffle_settings()
        self.assertEqual(settings.chain_id, 31337)
        self.assertEqual(settings.network, "hardhat")
        self.assertTrue(settings.is_development)
        self.assertEqual(settings.entrance_fee, 10**16)
        self.assertEqual(settings.interval, NETWORK_CONFIG[31337]["interval"])
        self.assertEqual(settings.gas_lane, DEFAULT_GAS_LANE)
        self.assertEqual(settings.callback_gas_limit, 500000)
        self.assertIsNone(settings.vrf_coordinator)

    def test_environment_overrides(self, mock_load_dotenv):
        env = {
            "RAFFLE_CHAIN_ID": "11155111",
            "RAFFLE_SUBSCRIPTION_ID": "4242",
            "RAFFLE_INTERVAL": "60",
            "RAFFLE_ENTRANCE_FEE_WEI": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_raffle_settings()
        self.assertEqual(settings.network, "sepolia")
        self.assertFalse(settings.is_development)
        self.assertEqual(settings.subscription_id, 4242)
        self.assertEqual(settings.interval, 60)
        self.assertEqual(settings.entrance_fee, 5)
        self.assertEqual(
            settings.vrf_coordinator, NETWORK_CONFIG[11155111]["vrf_coordinator"]
        )

    def test_live_network_requires_subscription(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                load_raffle_settings(11155111)

    def test_unknown_chain(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                load_raffle_settings(1)

    def test_invalid_values(self, mock_load_dotenv):
        for env in (
            {"RAFFLE_INTERVAL": "soon"},
            {"RAFFLE_ENTRANCE_FEE_WEI": "0"},
            {"RAFFLE_CALLBACK_GAS_LIMIT": "-1"},
        ):
            with self.subTest(env=env):
                with patch.dict(os.environ, env, clear=True):
                    with self.assertRaises(ValueError):
                        load_raffle_settings()


class EthToWeiTests(unittest.TestCase):
    def test_converts_decimal_strings(self):
        self.assertEqual(eth_to_wei("0.01"), 10**16)
        self.assertEqual(eth_to_wei(2), 2 * 10**18)

    def test_rejects_sub_wei_precision(self):
        with self.assertRaises(ValueError):
            eth_to_wei("0.0000000000000000001")

    def test_rejects_garbage(self):
        with self.assertRaises(ValueError):
            eth_to_wei("lots")


if __name__ == "__main__":
    unittest.main()
