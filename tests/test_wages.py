from __future__ import annotations

import datetime
import unittest
from types import SimpleNamespace

from labor_budget.wages import base_rate, effective_rate, rate_table


def _wage(position, rate, effective_date=None):
    return SimpleNamespace(position=position, rate=rate, effective_date=effective_date)


class EffectiveRateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.employee = SimpleNamespace(
            base_hourly_rate=15.0,
            wage_history=[
                _wage("Cook", 18.0, datetime.date(2024, 1, 1)),
                _wage("Cook", 19.5, datetime.date(2024, 6, 1)),
                _wage("Server", 9.25, None),
            ],
        )

    def test_rate_before_first_entry_uses_base(self) -> None:
        self.assertEqual(effective_rate(self.employee, "Cook", datetime.date(2023, 12, 31)), 15.0)

    def test_latest_entry_on_or_before_date_wins(self) -> None:
        self.assertEqual(effective_rate(self.employee, "Cook", datetime.date(2024, 1, 1)), 18.0)
        self.assertEqual(effective_rate(self.employee, "Cook", datetime.date(2024, 5, 31)), 18.0)
        self.assertEqual(effective_rate(self.employee, "Cook", datetime.datetime(2024, 6, 1, 8, 0)), 19.5)

    def test_entry_without_date_applies_from_start(self) -> None:
        self.assertEqual(effective_rate(self.employee, "Server", datetime.date(2000, 1, 1)), 9.25)

    def test_unknown_position_uses_base(self) -> None:
        self.assertEqual(effective_rate(self.employee, "Host", datetime.date(2024, 7, 1)), 15.0)

    def test_rates_are_rounded_and_floored(self) -> None:
        employee = SimpleNamespace(base_hourly_rate=-4, wage_history=[_wage("Cook", 12.345)])
        self.assertEqual(base_rate(employee), 0.0)
        self.assertEqual(effective_rate(employee, "Cook", datetime.date(2024, 1, 1)), 12.35)

    def test_rate_table(self) -> None:
        table = rate_table(self.employee, datetime.date(2024, 7, 1))
        self.assertEqual(table, {"Cook": 19.5, "Server": 9.25})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
