"""
Tests for environment overrides of the config singletons.
"""

import unittest
from dataclasses import fields

from gridbrain import config
from gridbrain.errors import PluginConfigError


class TestLoadFromEnv(unittest.TestCase):

    def setUp(self):
        self._saved = (config.TELEMETRY, config.NOTIFIER, config.SERVER, config.METRICS, config.LOGGING)

    def tearDown(self):
        config.TELEMETRY, config.NOTIFIER, config.SERVER, config.METRICS, config.LOGGING = self._saved

    def test_empty_env_keeps_defaults(self):
        config.load_from_env({})
        self.assertEqual(config.TELEMETRY, config.TelemetryConfig())
        self.assertEqual(config.SERVER.TCP_PORT, 50051)

    def test_one_socket_path_setting(self):
        socket_fields = [f.name for f in fields(config.ServerConfig) if "UDS" in f.name]
        self.assertEqual(socket_fields, ["DEV_UDS_PATH"])

    def test_overrides(self):
        config.load_from_env({
            "GRIDBRAIN_TELEMETRY_URL": "http://grid.local/data",
            "GRIDBRAIN_TELEMETRY_TIMEOUT": "0.5",
            "GRIDBRAIN_NOTIFY_ENABLED": "false",
            "GRIDBRAIN_TCP_PORT": "6000",
            "GRIDBRAIN_METRICS_PORT": "9200",
            "GRIDBRAIN_LOG_LEVEL": "debug",
        })
        self.assertEqual(config.TELEMETRY.URL, "http://grid.local/data")
        self.assertEqual(config.TELEMETRY.TIMEOUT_SECONDS, 0.5)
        self.assertFalse(config.NOTIFIER.ENABLED)
        self.assertEqual(config.SERVER.TCP_PORT, 6000)
        self.assertEqual(config.METRICS.PORT, 9200)
        self.assertEqual(config.LOGGING.LEVEL, "DEBUG")

    def test_malformed_values(self):
        for env in (
            {"GRIDBRAIN_TELEMETRY_TIMEOUT": "soon"},
            {"GRIDBRAIN_TELEMETRY_TIMEOUT": "0"},
            {"GRIDBRAIN_TCP_PORT": "http"},
            {"GRIDBRAIN_NOTIFY_ENABLED": "maybe"},
        ):
            with self.assertRaises(PluginConfigError, msg=str(env)):
                config.load_from_env(env)


if __name__ == "__main__":
    unittest.main()
