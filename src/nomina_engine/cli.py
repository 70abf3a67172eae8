"""Nomina engine command line interface.

Provides operational tools for:
- Creating the database schema
- Validating tax table files
- Calculating one employee or a whole period
- Approving and paying periods
- Period summaries

Usage:
    python -m nomina_engine init-db
    python -m nomina_engine check-tax-tables --year 2025
    python -m nomina_engine calculate --employee-id X --period-id Y
    python -m nomina_engine bulk-calculate --period-id Y --all
    python -m nomina_engine approve --period-id Y
    python -m nomina_engine pay --period-id Y
    python -m nomina_engine summary --period-id Y --concepts
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable
from uuid import UUID

from nomina_engine.config import configure_logging, get_settings
from nomina_engine.database import dispose_db, get_session, init_models
from nomina_engine.errors import PayrollError
from nomina_engine.schemas import PayrollCalculationResponse, PayrollPeriodResponse
from nomina_engine.services import (
    BulkCalculationService,
    PayrollService,
    PeriodService,
    SummaryService,
)
from nomina_engine.tax_config import FileTaxConfigProvider

logger = logging.getLogger(__name__)


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


class NominaCli:
    """Nomina engine Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m nomina_engine",
            description="Mexican payroll calculation engine",
        )
        parser.add_argument(
            "--log-level",
            default=None,
            help="Logging level (default: LOG_LEVEL or INFO)",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create database tables",
        )

        # check-tax-tables command
        check = subparsers.add_parser(
            "check-tax-tables",
            help="Validate the tax table file of a fiscal year",
        )
        check.add_argument(
            "--year",
            type=int,
            required=True,
            help="Fiscal year",
        )
        check.add_argument(
            "--dir",
            type=Path,
            default=None,
            help="Tax table directory (default: NOMINA_TAX_CONFIG_DIR)",
        )

        # calculate command
        calc = subparsers.add_parser(
            "calculate",
            help="Calculate payroll for one employee",
        )
        calc.add_argument(
            "--employee-id",
            type=parse_uuid,
            required=True,
            help="Employee ID",
        )
        calc.add_argument(
            "--period-id",
            type=parse_uuid,
            required=True,
            help="Payroll period ID",
        )
        calc.add_argument(
            "--calculate-sdi",
            action="store_true",
            help="Recompute the integrated daily salary",
        )

        # bulk-calculate command
        bulk = subparsers.add_parser(
            "bulk-calculate",
            help="Calculate payroll for many employees",
        )
        bulk.add_argument(
            "--period-id",
            type=parse_uuid,
            required=True,
            help="Payroll period ID",
        )
        target = bulk.add_mutually_exclusive_group(required=True)
        target.add_argument(
            "--employee-id",
            type=parse_uuid,
            action="append",
            dest="employee_ids",
            help="Employee ID (repeatable)",
        )
        target.add_argument(
            "--all",
            action="store_true",
            dest="calculate_all",
            help="All active employees paid at the period frequency",
        )
        bulk.add_argument(
            "--deadline",
            type=float,
            default=None,
            help="Deadline in seconds (default: NOMINA_BULK_DEADLINE_SECONDS)",
        )
        bulk.add_argument(
            "--calculate-sdi",
            action="store_true",
            help="Recompute the integrated daily salary",
        )

        # approve / pay commands
        for name, help_text in (
            ("approve", "Approve a calculated period"),
            ("pay", "Mark an approved period as paid"),
        ):
            cmd = subparsers.add_parser(name, help=help_text)
            cmd.add_argument(
                "--period-id",
                type=parse_uuid,
                required=True,
                help="Payroll period ID",
            )

        # summary command
        summary = subparsers.add_parser(
            "summary",
            help="Show stored totals of a period",
        )
        summary.add_argument(
            "--period-id",
            type=parse_uuid,
            required=True,
            help="Payroll period ID",
        )
        summary.add_argument(
            "--concepts",
            action="store_true",
            help="Show totals per payroll concept instead of per employee",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        configure_logging(parsed.log_level)

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "init-db": self._cmd_init_db,
            "check-tax-tables": self._cmd_check_tax_tables,
            "calculate": self._cmd_calculate,
            "bulk-calculate": self._cmd_bulk_calculate,
            "approve": self._cmd_approve,
            "pay": self._cmd_pay,
            "summary": self._cmd_summary,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except PayrollError as e:
            print(f"{e.code}: {e}", file=sys.stderr)
            return 1

    def _run_async(self, coro) -> Any:
        async def runner():
            try:
                return await coro
            finally:
                await dispose_db()

        return asyncio.run(runner())

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create database tables."""
        self._run_async(init_models())
        print(f"Database initialized: {get_settings().database_url}")
        return 0

    def _cmd_check_tax_tables(self, args: argparse.Namespace) -> int:
        """Validate a tax table file."""
        directory = args.dir or get_settings().tax_config_dir
        tables = FileTaxConfigProvider(directory).load_year(args.year)

        print(f"Tax tables {args.year}: OK ({directory})")
        for period_type, table in sorted(tables.items(), key=lambda kv: kv[0].value):
            print(
                f"  {period_type.value:<9} ISR brackets: {len(table.isr_brackets):>2}"
                f"  subsidy rows: {len(table.subsidy_brackets):>2}"
                f"  UMA: {table.uma_daily_value}"
            )
        return 0

    def _cmd_calculate(self, args: argparse.Namespace) -> int:
        """Calculate payroll for one employee."""

        async def calculate() -> dict:
            async with get_session() as session:
                calc = await PayrollService(session).calculate(
                    args.employee_id, args.period_id, args.calculate_sdi
                )
                return PayrollCalculationResponse.model_validate(calc).model_dump(mode="json")

        print_json(self._run_async(calculate()))
        return 0

    def _cmd_bulk_calculate(self, args: argparse.Namespace) -> int:
        """Calculate payroll for many employees."""

        async def bulk() -> dict:
            async with get_session() as session:
                result = await BulkCalculationService(session).bulk_calculate(
                    args.period_id,
                    employee_ids=args.employee_ids,
                    calculate_all=args.calculate_all,
                    deadline_seconds=args.deadline,
                    calculate_sdi=args.calculate_sdi,
                )
                return result.to_dict()

        data = self._run_async(bulk())
        print_json(data)
        return 0 if data["total_failed"] == 0 else 1

    def _cmd_approve(self, args: argparse.Namespace) -> int:
        """Approve a period."""
        return self._transition(args.period_id, "approve")

    def _cmd_pay(self, args: argparse.Namespace) -> int:
        """Mark a period as paid."""
        return self._transition(args.period_id, "process_payment")

    def _transition(self, period_id: UUID, method: str) -> int:
        async def transition() -> dict:
            async with get_session() as session:
                period = await getattr(PeriodService(session), method)(period_id)
                return PayrollPeriodResponse.model_validate(period).model_dump(mode="json")

        print_json(self._run_async(transition()))
        return 0

    def _cmd_summary(self, args: argparse.Namespace) -> int:
        """Show stored totals of a period."""

        async def summarize() -> Any:
            async with get_session() as session:
                service = SummaryService(session)
                if args.concepts:
                    totals = await service.concept_totals(args.period_id)
                    return [t.model_dump(mode="json") for t in totals]
                summary = await service.period_summary(args.period_id)
                return summary.model_dump(mode="json")

        print_json(self._run_async(summarize()))
        return 0


def main() -> int:
    """CLI entry point."""
    cli = NominaCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
