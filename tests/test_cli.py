"""Tests for command line argument parsing."""

from datetime import date
from uuid import UUID

import pytest

from antigua_payroll.__main__ import build_parser


class TestParser:
    def test_run_arguments(self):
        args = build_parser().parse_args(
            ["run", "--start", "2024-01-01", "--end", "2024-01-14", "--pay-date", "2024-01-19", "--workers", "4"]
        )

        assert args.command == "run"
        assert args.start == date(2024, 1, 1)
        assert args.pay_date == date(2024, 1, 19)
        assert args.workers == 4

    def test_run_id_parsed_as_uuid(self):
        args = build_parser().parse_args(["finalize", "12345678-1234-5678-1234-567812345678"])

        assert args.run_id == UUID("12345678-1234-5678-1234-567812345678")
        assert args.actor is None

    def test_invalid_date_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--start", "01/01/2024", "--end", "2024-01-14", "--pay-date", "2024-01-19"])
