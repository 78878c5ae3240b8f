import os
import unittest
from pathlib import Path
from unittest.mock import patch

from popm_bootstrap.config import DEFAULT_BFG_URL, BootstrapConfig


class TestBootstrapConfig(unittest.TestCase):

    def test_defaults(self):
        config = BootstrapConfig()

        self.assertEqual(config.required_kb, 500000)
        self.assertEqual(config.resolve_attempts, 3)
        self.assertEqual(config.resolve_delay, 2.0)
        self.assertEqual(config.session_name, "RTad")
        self.assertEqual(config.bfg_url, DEFAULT_BFG_URL)
        self.assertEqual(config.wallet_path, Path("~/popm-address.json").expanduser())
        self.assertEqual(config.validate(), [])

    def test_wallet_path_is_expanded(self):
        config = BootstrapConfig(wallet_path="~/custom-wallet.json")
        self.assertFalse(str(config.wallet_path).startswith("~"))

    @patch.dict(os.environ, {
        "POPM_WORKDIR": "/opt/popm",
        "POPM_WALLET_PATH": "/srv/wallet.json",
        "POPM_REQUIRED_KB": "1024",
        "POPM_SESSION_NAME": "popm",
        "POPM_VERBOSE": "true",
    })
    def test_from_env(self):
        config = BootstrapConfig.from_env()

        self.assertEqual(config.workdir, Path("/opt/popm"))
        self.assertEqual(config.wallet_path, Path("/srv/wallet.json"))
        self.assertEqual(config.required_kb, 1024)
        self.assertEqual(config.session_name, "popm")
        self.assertTrue(config.verbose)

    def test_validate_reports_every_problem(self):
        config = BootstrapConfig(
            required_kb=-1,
            resolve_attempts=0,
            release_index_url="ftp://example.com",
            bfg_url="https://not-a-websocket",
            session_name="two words",
        )

        errors = config.validate()

        self.assertEqual(len(errors), 5)
        self.assertTrue(any("session_name" in e for e in errors))
        self.assertTrue(any("bfg_url" in e for e in errors))


if __name__ == '__main__':
    unittest.main()
