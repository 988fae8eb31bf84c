"""Tests for YTD aggregation."""

from decimal import Decimal
from types import SimpleNamespace

from antigua_payroll.calculators.ytd import SNAPSHOT_PREFIX, YTD_FIELDS, YTDAggregator, YTDTotals


def contribution(gross: str, net: str) -> YTDTotals:
    return YTDTotals(gross_pay=Decimal(gross), net_pay=Decimal(net), ss_employee=Decimal("10.00"))


class TestYTDAggregator:
    def test_accumulate_from_nothing(self):
        totals = YTDAggregator().accumulate(None, contribution("1000.00", "800.00"))

        assert totals.gross_pay == Decimal("1000.00")
        assert totals.net_pay == Decimal("800.00")

    def test_sum_of_runs(self):
        aggregator = YTDAggregator()
        runs = [contribution("1000.00", "800.00"), contribution("1200.00", "950.00"), contribution("900.00", "700.00")]

        totals = None
        for run in runs:
            totals = aggregator.accumulate(totals, run)

        assert totals.gross_pay == Decimal("3100.00")
        assert totals.net_pay == Decimal("2450.00")
        assert totals.ss_employee == Decimal("30.00")

    def test_retract_restores_prior(self):
        aggregator = YTDAggregator()
        first = contribution("1000.00", "800.00")
        second = contribution("1200.00", "950.00")

        totals = aggregator.accumulate(aggregator.accumulate(None, first), second)

        assert aggregator.retract(totals, second) == first

    def test_from_missing_source_is_zero(self):
        assert YTDTotals.from_source(None) == YTDTotals()

    def test_snapshot_written_with_prefix(self):
        target = SimpleNamespace()
        totals = contribution("1000.00", "800.00")

        YTDAggregator().write_snapshot(target, totals)

        assert target.ytd_gross_pay == Decimal("1000.00")
        assert YTDTotals.from_source(target, SNAPSHOT_PREFIX) == totals
        assert all(hasattr(target, SNAPSHOT_PREFIX + name) for name in YTD_FIELDS)
