"""Year-to-date aggregation by additive update."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any

from antigua_payroll.calculators.types import ZERO

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = "ytd_"


@dataclass(frozen=True)
class YTDTotals:
    """Per-field totals. Field names match PayrollItem and YTDSummary columns."""

    gross_pay: Decimal = ZERO
    ss_employee: Decimal = ZERO
    ss_employer: Decimal = ZERO
    mb_employee: Decimal = ZERO
    mb_employer: Decimal = ZERO
    education_levy: Decimal = ZERO
    net_pay: Decimal = ZERO
    worked_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    vacation_hours: Decimal = ZERO
    vacation_amount: Decimal = ZERO
    leave_hours: Decimal = ZERO
    leave_amount: Decimal = ZERO
    holiday_hours: Decimal = ZERO
    holiday_amount: Decimal = ZERO
    loan_deduction: Decimal = ZERO

    @classmethod
    def from_source(cls, source: Any, prefix: str = "") -> YTDTotals:
        """Read totals from any object exposing the field names (optionally prefixed)."""
        if source is None:
            return cls()
        return cls(
            **{
                name: Decimal(getattr(source, prefix + name, None) or ZERO)
                for name in YTD_FIELDS
            }
        )

    def __add__(self, other: YTDTotals) -> YTDTotals:
        return YTDTotals(**{name: getattr(self, name) + getattr(other, name) for name in YTD_FIELDS})

    def __sub__(self, other: YTDTotals) -> YTDTotals:
        return YTDTotals(**{name: getattr(self, name) - getattr(other, name) for name in YTD_FIELDS})

    def write_to(self, target: Any, prefix: str = "") -> None:
        for name in YTD_FIELDS:
            setattr(target, prefix + name, getattr(self, name))


YTD_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(YTDTotals))


class YTDAggregator:
    """Rolls run contributions into running yearly totals.

    Totals are never rebuilt by rescanning history: each run adds its
    contribution once, and deleting a run retracts it.
    """

    def contribution(self, source: Any) -> YTDTotals:
        """The per-field amounts one item contributes."""
        return YTDTotals.from_source(source)

    def accumulate(self, prior: YTDTotals | None, contribution: YTDTotals) -> YTDTotals:
        return (prior or YTDTotals()) + contribution

    def retract(self, current: YTDTotals, contribution: YTDTotals) -> YTDTotals:
        result = current - contribution
        negative = [name for name in YTD_FIELDS if getattr(result, name) < 0]
        if negative:
            logger.warning("YTD retraction left negative totals for %s", ", ".join(negative))
        return result

    def write_snapshot(self, item: Any, totals: YTDTotals) -> None:
        """Store cumulative totals on an item's ytd_* fields."""
        totals.write_to(item, SNAPSHOT_PREFIX)
