"""Tool output parsing."""

import json
import unittest

from cloudbench.exceptions import ParseError
from cloudbench.parsers import (
    parse_curl_speed_mb,
    parse_fio_iops,
    parse_ioping_latency,
    parse_speedtest_json,
)
from tests.fakes import FIO_READ_JSON, FIO_WRITE_JSON, IOPING_OUTPUT, SPEEDTEST_JSON


class TestCurlSpeed(unittest.TestCase):

    def test_bytes_per_second_to_mb(self):
        self.assertAlmostEqual(parse_curl_speed_mb("2097152.000\n"), 2.0)

    def test_empty_output_is_zero(self):
        """A transfer that never started contributes nothing."""
        self.assertEqual(parse_curl_speed_mb(""), 0.0)
        self.assertEqual(parse_curl_speed_mb("   \n"), 0.0)

    def test_garbage_is_zero(self):
        self.assertEqual(parse_curl_speed_mb("curl: (6) Could not resolve host"), 0.0)
        self.assertEqual(parse_curl_speed_mb("nan"), 0.0)

    def test_uses_last_token(self):
        self.assertAlmostEqual(parse_curl_speed_mb("warning: something\n524288\n"), 0.5)

    def test_locale_decimal_comma(self):
        self.assertAlmostEqual(parse_curl_speed_mb("1048576,000"), 1.0)


class TestSpeedtest(unittest.TestCase):

    def test_units(self):
        ping, down, up = parse_speedtest_json(SPEEDTEST_JSON)
        self.assertEqual(ping, 12.5)
        self.assertAlmostEqual(down, 10.0)
        self.assertAlmostEqual(up, 5.0)

    def test_invalid_json(self):
        with self.assertRaises(ParseError):
            parse_speedtest_json("ERROR: Unable to connect to servers")

    def test_missing_field(self):
        with self.assertRaises(ParseError):
            parse_speedtest_json(json.dumps({"ping": 1.0, "download": 8.0}))

    def test_non_numeric_field(self):
        with self.assertRaises(ParseError):
            parse_speedtest_json(json.dumps({"ping": "fast", "download": 8.0, "upload": 8.0}))

    def test_not_an_object(self):
        with self.assertRaises(ParseError):
            parse_speedtest_json("[]")


class TestFio(unittest.TestCase):

    def test_read_and_write_directions(self):
        self.assertEqual(parse_fio_iops(FIO_READ_JSON, "read"), 45231.87)
        self.assertEqual(parse_fio_iops(FIO_WRITE_JSON, "write"), 30120.5)

    def test_leading_warnings_are_skipped(self):
        noisy = "fio: this platform does not support direct I/O\n" + FIO_READ_JSON
        self.assertEqual(parse_fio_iops(noisy, "read"), 45231.87)

    def test_no_json(self):
        with self.assertRaises(ParseError):
            parse_fio_iops("fio: engine libaio not loadable", "read")

    def test_no_jobs(self):
        with self.assertRaises(ParseError):
            parse_fio_iops(json.dumps({"jobs": []}), "read")

    def test_missing_direction(self):
        with self.assertRaises(ParseError):
            parse_fio_iops(json.dumps({"jobs": [{"read": {"iops": 1.0}}]}), "write")

    def test_bad_direction_argument(self):
        with self.assertRaises(ValueError):
            parse_fio_iops(FIO_READ_JSON, "trim")


class TestIoping(unittest.TestCase):

    def test_average_latency(self):
        self.assertEqual(parse_ioping_latency(IOPING_OUTPUT), "136.6 us")

    def test_millisecond_units(self):
        line = "min/avg/max/mdev = 1.02 ms / 2.50 ms / 4.10 ms / 0.90 ms\n"
        self.assertEqual(parse_ioping_latency(line), "2.50 ms")

    def test_no_summary(self):
        with self.assertRaises(ParseError):
            parse_ioping_latency("ioping: request failed: Permission denied")


if __name__ == "__main__":
    unittest.main()
