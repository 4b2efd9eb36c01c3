"""End-to-end CLI runs against a fake tool runner."""

import contextlib
import csv
import io
import logging
import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock

from cloudbench.cli import EXIT_CONFIG, EXIT_OK, EXIT_SINK, main, parse_options
from cloudbench.exceptions import ConfigError
from tests.fakes import healthy_runner

FAST_ENV = {
    "CLOUDBENCH_SETTLE_DELAY_S": "0",
    "CLOUDBENCH_CDN_COOLDOWN_S": "0",
    "CLOUDBENCH_CPU_HASH_COUNT": "1000",
}


class TestParseOptions(unittest.TestCase):

    def test_all_flags(self):
        opts = parse_options(["--interval", "60", "--limit", "3", "--nodisk", "--nocdn", "--out", "b.csv"])
        self.assertEqual(opts.interval_s, 60.0)
        self.assertEqual(opts.limit, 3)
        self.assertTrue(opts.nodisk)
        self.assertTrue(opts.nocdn)
        self.assertEqual(opts.out, Path("b.csv"))

    def test_missing_flag(self):
        with self.assertRaisesRegex(ConfigError, "--out"):
            parse_options(["--interval", "60", "--limit", "3"])

    def test_bad_type(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(ConfigError):
                parse_options(["--interval", "soon", "--limit", "3", "--out", "b.csv"])


class TestMain(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.out = self.dir / "test.csv"

    def tearDown(self):
        self._tmp.cleanup()

    def _main(self, argv):
        stdout = io.StringIO()
        with mock.patch.dict(os.environ, FAST_ENV), contextlib.redirect_stdout(stdout):
            code = main(argv, runner=healthy_runner())
        return code, stdout.getvalue()

    def _rows(self):
        with open(self.out, encoding="utf-8", newline="") as f:
            return list(csv.reader(f))

    def test_missing_out_prints_usage(self):
        code, text = self._main(["--interval", "1", "--limit", "2"])
        self.assertEqual(code, EXIT_CONFIG)
        self.assertIn("Usage: cloudbench", text)
        self.assertFalse(self.out.exists())

    def test_zero_interval_rejected(self):
        code, _ = self._main(["--interval", "0", "--limit", "2", "--out", str(self.out)])
        self.assertEqual(code, EXIT_CONFIG)
        self.assertFalse(self.out.exists())

    def test_non_finite_interval_rejected(self):
        for interval in ("nan", "inf"):
            with self.subTest(interval=interval):
                code, text = self._main(["--interval", interval, "--limit", "2", "--nodisk",
                                         "--out", str(self.out)])
                self.assertEqual(code, EXIT_CONFIG)
                self.assertIn("Usage: cloudbench", text)
                self.assertFalse(self.out.exists())

    def test_non_finite_env_delay_rejected(self):
        with mock.patch.dict(os.environ, {"CLOUDBENCH_CDN_MAX_TIME_S": "inf"}):
            code, _ = self._main(["--interval", "1", "--limit", "1", "--out", str(self.out)])
        self.assertEqual(code, EXIT_CONFIG)
        self.assertFalse(self.out.exists())

    def test_two_runs_written(self):
        code, text = self._main(["--interval", "1", "--limit", "2", "--out", str(self.out)])
        self.assertEqual(code, EXIT_OK)
        self.assertIn("Benchmark complete!", text)

        rows = self._rows()
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0][0], "Time")
        self.assertEqual(len(rows[0]), 9)
        for row in rows[1:]:
            self.assertEqual(len(row), 9)
            datetime.fromisoformat(row[0])
            self.assertEqual(float(row[1]), 1.0)

    def test_nodisk_writes_placeholders(self):
        code, _ = self._main(["--interval", "1", "--limit", "1", "--nodisk", "--out", str(self.out)])
        self.assertEqual(code, EXIT_OK)
        rows = self._rows()
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][-3:], ["N/A", "N/A", "N/A"])

    def test_nocdn_drops_column(self):
        code, _ = self._main(["--interval", "1", "--limit", "1", "--nocdn", "--out", str(self.out)])
        self.assertEqual(code, EXIT_OK)
        rows = self._rows()
        self.assertNotIn("Download (CDN)", rows[0])
        self.assertEqual(len(rows[1]), 8)

    def test_unwritable_output(self):
        blocker = self.dir / "file"
        blocker.write_text("x", encoding="utf-8")
        code, _ = self._main(["--interval", "1", "--limit", "1", "--out", str(blocker / "out.csv")])
        self.assertEqual(code, EXIT_SINK)

    def test_log_dir(self):
        logs = self.dir / "logs"
        code, _ = self._main(["--interval", "1", "--limit", "1", "--nodisk",
                              "--log-dir", str(logs), "--out", str(self.out)])
        logger = logging.getLogger("cloudbench")
        for handler in list(logger.handlers):
            if getattr(handler, "_cloudbench_file_handler", False):
                logger.removeHandler(handler)
                handler.close()
        self.assertEqual(code, EXIT_OK)
        self.assertTrue(list(logs.glob("cloudbench-*.log")))


if __name__ == "__main__":
    unittest.main()
