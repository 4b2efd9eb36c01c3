"""Host context snapshots."""

import unittest
from unittest import mock

from cloudbench.collectors import EnvironmentCollector, SystemCollector


class TestEnvironmentCollector(unittest.TestCase):

    def test_fields(self):
        data, elapsed_ms = EnvironmentCollector().collect_timed()
        for key in ("hostname", "platform", "cpu_logical", "memory_total_mb", "io_engine"):
            self.assertIn(key, data)
        self.assertIn(data["io_engine"], ("libaio", "posixaio"))
        self.assertGreaterEqual(elapsed_ms, 0.0)

    def test_engine_follows_os_family(self):
        with mock.patch("cloudbench.config.platform.system", return_value="Darwin"):
            data = EnvironmentCollector().collect()
        self.assertEqual(data["os_family"], "mac")
        self.assertEqual(data["io_engine"], "posixaio")


class TestSystemCollector(unittest.TestCase):

    def test_snapshot(self):
        data = SystemCollector().collect()
        self.assertGreaterEqual(data["cpu_percent"], 0.0)
        self.assertGreater(data["memory_available_mb"], 0)

    def test_missing_loadavg(self):
        with mock.patch("cloudbench.collectors.os.getloadavg", side_effect=OSError, create=True):
            data = SystemCollector().collect()
        self.assertIsNone(data["load_avg_1m"])


if __name__ == "__main__":
    unittest.main()
