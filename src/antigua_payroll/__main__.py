"""Command line entry point: ``python -m antigua_payroll``."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from uuid import UUID

from antigua_payroll.config import get_settings
from antigua_payroll.database import create_schema, dispose_db, get_session
from antigua_payroll.exceptions import PayrollError
from antigua_payroll.reports import ReportService
from antigua_payroll.schemas import PayrollRunResponse
from antigua_payroll.seed import seed_demo_employees, seed_holidays, seed_settings
from antigua_payroll.services import PayrollRunService

logger = logging.getLogger("antigua_payroll")


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="antigua-payroll", description="Antigua payroll engine")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create database tables")

    seed = sub.add_parser("seed-rates", help="insert default rate settings and holidays")
    seed.add_argument("--year", type=int, default=date.today().year)
    seed.add_argument("--demo", action="store_true", help="also create demo employees")

    run = sub.add_parser("run", help="compute and persist a payroll run")
    run.add_argument("--start", type=_date, required=True)
    run.add_argument("--end", type=_date, required=True)
    run.add_argument("--pay-date", type=_date, required=True)
    run.add_argument("--workers", type=int, default=None)
    run.add_argument("--actor", default=None)

    finalize = sub.add_parser("finalize", help="finalize a completed run")
    finalize.add_argument("run_id", type=UUID)
    finalize.add_argument("--actor", default=None)

    delete = sub.add_parser("delete", help="delete a run that is not finalized")
    delete.add_argument("run_id", type=UUID)
    delete.add_argument("--actor", default=None)

    show = sub.add_parser("show", help="print a run with its items as JSON")
    show.add_argument("run_id", type=UUID)

    listing = sub.add_parser("list", help="list recent runs")
    listing.add_argument("--limit", type=int, default=20)

    ach = sub.add_parser("ach", help="print the ACH export of a run")
    ach.add_argument("run_id", type=UUID)

    deductions = sub.add_parser("deductions", help="print statutory totals per employee")
    deductions.add_argument("--from", dest="start", type=_date, default=None)
    deductions.add_argument("--to", dest="end", type=_date, default=None)

    return parser


async def _dispatch(args: argparse.Namespace) -> None:
    if args.command == "init-db":
        await create_schema()
        print("Schema created")
        return

    async with get_session() as session:
        if args.command == "seed-rates":
            await seed_settings(session)
            added = await seed_holidays(session, args.year)
            print(f"Rate settings ready, {added} holidays added for {args.year}")
            if args.demo:
                created = await seed_demo_employees(session)
                print(f"{len(created)} demo employees created")

        elif args.command == "run":
            result = await PayrollRunService(session).run_payroll(
                args.start,
                args.end,
                args.pay_date,
                created_by=args.actor,
                max_workers=args.workers,
            )
            run = result.run
            print(f"Run {run.payroll_run_id}: {run.status}")
            print(f"  employees {run.total_employees}  gross {run.total_gross}  net {run.total_net}")
            for failure in result.failures:
                print(f"  FAILED {failure.employee_id}: {failure.reason}")
            for employee_id, messages in result.warnings.items():
                for message in messages:
                    print(f"  warning {employee_id}: {message}")

        elif args.command == "finalize":
            run = await PayrollRunService(session).finalize_run(args.run_id, args.actor)
            print(f"Run {run.payroll_run_id} finalized by {run.finalized_by}")

        elif args.command == "delete":
            await PayrollRunService(session).delete_run(args.run_id, args.actor)
            print(f"Run {args.run_id} deleted")

        elif args.command == "show":
            run = await PayrollRunService(session).get_run(args.run_id)
            print(PayrollRunResponse.model_validate(run).model_dump_json(indent=2))

        elif args.command == "list":
            for run in await PayrollRunService(session).list_runs(args.limit):
                print(
                    f"{run.payroll_run_id}  {run.period_start}..{run.period_end}  "
                    f"{run.status:<22} net {run.total_net}"
                )

        elif args.command == "ach":
            export = await ReportService(session).ach_export(args.run_id)
            for row in export.rows:
                if row.has_banking_info:
                    print(
                        f"{row.employee_name:<30} {row.amount:>12}  {row.account_type} "
                        f"{row.account_number} {row.routing_number}  {row.institute}"
                    )
                else:
                    print(f"{row.employee_name:<30} {row.amount:>12}  no banking information")
            print(f"Total {export.total_amount} over {export.total_transactions} transactions")

        elif args.command == "deductions":
            report = await ReportService(session).deductions_report(args.start, args.end)
            rows = [
                {"employee_id": r.employee_id, "employee_name": r.employee_name, **r.totals}
                for r in report.rows
            ]
            print(json.dumps({"rows": rows, "totals": report.totals}, indent=2, default=str))


async def _main(args: argparse.Namespace) -> None:
    try:
        await _dispatch(args)
    finally:
        await dispose_db()


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_main(args))
    except PayrollError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
