from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from physlab_report.parsing import is_blank, mean_of_readings, parse_reading  # noqa: E402


class ParseReadingTests(unittest.TestCase):
    def test_comma_and_dot_decimal_separators(self) -> None:
        self.assertAlmostEqual(parse_reading("9,81"), 9.81)
        self.assertAlmostEqual(parse_reading("9.81"), 9.81)
        self.assertAlmostEqual(parse_reading("  2,5 "), 2.5)

    def test_signs_and_exponents(self) -> None:
        self.assertAlmostEqual(parse_reading("-.5"), -0.5)
        self.assertAlmostEqual(parse_reading("+3"), 3.0)
        self.assertAlmostEqual(parse_reading("1e3"), 1000.0)
        self.assertAlmostEqual(parse_reading("1,5E-2"), 0.015)

    def test_numbers_pass_through(self) -> None:
        self.assertEqual(parse_reading(4), 4.0)
        self.assertEqual(parse_reading(0.25), 0.25)

    def test_invalid_input_is_nan(self) -> None:
        for raw in ("", "   ", "abc", "1.2.3", "1,2,3", "12 cm", "nan", "inf", None, True):
            with self.subTest(raw=raw):
                self.assertTrue(math.isnan(parse_reading(raw)))
        self.assertTrue(math.isnan(parse_reading(float("inf"))))


class MeanOfReadingsTests(unittest.TestCase):
    def test_unparseable_entries_are_dropped(self) -> None:
        mean, count = mean_of_readings(["1", "2", "x", ""])
        self.assertEqual(count, 2)
        self.assertAlmostEqual(mean, 1.5)

    def test_no_valid_entries_gives_zero(self) -> None:
        self.assertEqual(mean_of_readings(["", "abc"]), (0.0, 0))
        self.assertEqual(mean_of_readings([]), (0.0, 0))

    def test_mixed_separators(self) -> None:
        mean, count = mean_of_readings(["0,90", "0.89", "0,91"])
        self.assertEqual(count, 3)
        self.assertAlmostEqual(mean, 0.9)


class IsBlankTests(unittest.TestCase):
    def test_blank_values(self) -> None:
        self.assertTrue(is_blank(None))
        self.assertTrue(is_blank("  "))
        self.assertFalse(is_blank("0"))


if __name__ == "__main__":
    unittest.main()
