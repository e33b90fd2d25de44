#!/usr/bin/env python3
"""
Admin command line for shop payroll runs.

Usage:
  python3 scripts/payroll_cli.py init-db
  python3 scripts/payroll_cli.py preview --start 2024-01-01 --end 2024-01-15
  python3 scripts/payroll_cli.py create --start 2024-01-01 --end 2024-01-15 --mode per-shift
  python3 scripts/payroll_cli.py finalize <run-id> [--resume]
  python3 scripts/payroll_cli.py void <run-id>
  python3 scripts/payroll_cli.py list [--status posted] [--interrupted]
  python3 scripts/payroll_cli.py paystubs <run-id>

The database URL comes from --db-url or SHOP_DATABASE_URL; the payroll
config from --config or SHOP_PAYROLL_CONFIG.
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = os.environ.get("SHOP_DATABASE_URL", "sqlite:///shop_payroll.db")

W = 80


# =============================================================================
# Formatting helpers
# =============================================================================


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def print_json(value) -> None:
    print(json.dumps(asdict(value) if hasattr(value, "__dataclass_fields__") else value,
                     indent=2, default=str))


def print_draft(draft, warnings) -> None:
    banner(f"PAYROLL {draft.period_start} - {draft.period_end} ({draft.expense_mode.value})")
    print(f"  {'Staff':<28} {'Hours':>8} {'Rate':>9} {'Gross':>11} {'Deduct':>10} {'Net':>11}")
    for line in draft.lines:
        t = line.totals
        print(
            f"  {line.staff_name[:28]:<28} {t.minutes / 60:>8.2f} {line.rate:>9.2f}"
            f" {t.gross:>11.2f} {t.total_deductions:>10.2f} {t.net:>11.2f}"
        )
    totals = draft.totals
    print("  " + "-" * (W - 4))
    print(f"  {'TOTAL':<28} {totals.minutes / 60:>8.2f} {'':>9} {totals.gross:>11.2f}"
          f" {'':>10} {totals.net:>11.2f}")
    for w in warnings:
        print(f"  WARNING [{w.code}] {w.staff_key or ''} {w.message}")


# =============================================================================
# Commands
# =============================================================================


def _preview(service, args):
    decide = (lambda shifts: True) if args.include_ongoing else None
    return service.preview(
        date.fromisoformat(args.start),
        date.fromisoformat(args.end),
        pay_date=date.fromisoformat(args.pay_date) if args.pay_date else None,
        expense_mode=args.mode,
        confirm_ongoing=decide,
    )


def cmd_preview(service, args) -> int:
    result = _preview(service, args)
    if args.json:
        print_json(result)
    else:
        print_draft(result.draft, result.warnings)
    return 0


def cmd_create(service, args) -> int:
    result = _preview(service, args)
    run_id = service.create_run(result.draft, actor=args.actor)
    print_draft(result.draft, result.warnings)
    print(f"\n  Created run {run_id}")
    return 0


def cmd_finalize(service, args) -> int:
    result = service.finalize_run(
        UUID(args.run_id), actor=args.actor, resume_interrupted=args.resume
    )
    if args.json:
        print_json(result)
        return 0
    banner(f"RUN {result.run_id} POSTED (attempt {result.attempt})")
    print(f"  Paystubs:          {len(result.paystubs)}")
    print(f"  Postings created:  {result.postings_created}")
    print(f"  Postings voided:   {result.postings_voided}")
    print(f"  Shifts tagged:     {result.shifts_tagged}")
    print(f"  Net total:         {result.net_total:.2f}")
    for w in result.warnings:
        print(f"  WARNING [{w.code}] {w.staff_key or ''} {w.message}")
    return 0


def cmd_void(service, args) -> int:
    result = service.void_run(UUID(args.run_id), actor=args.actor)
    print(f"  Run {result.run_id} voided; {result.postings_voided} postings voided")
    return 0


def cmd_list(service, args) -> int:
    runs = service.find_interrupted_runs() if args.interrupted else service.list_runs(args.status)
    if args.json:
        print_json([asdict(r) for r in runs])
        return 0
    for r in runs:
        print(
            f"  {r.run_id}  {r.period_start} - {r.period_end}  {r.status.value:<8}"
            f" {r.expense_mode.value:<9} net {r.totals.net:>11.2f}"
        )
    if not runs:
        print("  (no runs)")
    return 0


def cmd_paystubs(service, args) -> int:
    stubs = service.get_paystubs(UUID(args.run_id))
    if args.json:
        print_json([asdict(s) for s in stubs])
        return 0
    for stub in stubs:
        banner(f"{stub.staff_name}  {stub.period_start} - {stub.period_end}")
        for s in stub.shifts:
            print(f"    {s.label:<40} {s.hours:>8.2f} h")
        print(f"    {'Gross':<40} {stub.gross_pay:>10.2f}")
        for item in stub.addition_items:
            print(f"    + {item.label:<38} {item.amount:>10.2f}")
        for item in stub.deduction_items:
            print(f"    - {item.label:<38} {item.amount:>10.2f}")
        print(f"    {'Net pay':<40} {stub.net_pay:>10.2f}")
    return 0


# =============================================================================
# Main
# =============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shop payroll runs.")
    parser.add_argument("--db-url", default=DEFAULT_DB_URL,
                        help=f"Database URL (default: {DEFAULT_DB_URL})")
    parser.add_argument("--config", default=None, help="Payroll YAML config file")
    parser.add_argument("--actor", default="cli", help="Recorded as the actor of writes")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Structured logs to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables")

    for name in ("preview", "create"):
        p = sub.add_parser(name, help=f"{name.title()} a payroll run for a period")
        p.add_argument("--start", required=True, help="First day (YYYY-MM-DD)")
        p.add_argument("--end", required=True, help="Last day (YYYY-MM-DD)")
        p.add_argument("--pay-date", default=None, help="Pay date (default: today)")
        p.add_argument("--mode", choices=("per-staff", "per-shift"), default=None)
        p.add_argument("--include-ongoing", action="store_true",
                       help="Count ongoing shifts up to now instead of leaving them out")

    p = sub.add_parser("finalize", help="Post a draft run")
    p.add_argument("run_id")
    p.add_argument("--resume", action="store_true", help="Take over an interrupted run")

    p = sub.add_parser("void", help="Void a posted run")
    p.add_argument("run_id")

    p = sub.add_parser("list", help="List runs")
    p.add_argument("--status", choices=("draft", "posting", "posted", "voided"), default=None)
    p.add_argument("--interrupted", action="store_true", help="Only interrupted finalizes")

    p = sub.add_parser("paystubs", help="Show a run's paystubs")
    p.add_argument("run_id")
    return parser


COMMANDS = {
    "preview": cmd_preview,
    "create": cmd_create,
    "finalize": cmd_finalize,
    "void": cmd_void,
    "list": cmd_list,
    "paystubs": cmd_paystubs,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    from shop_config import get_active_config
    from shop_kernel.db.engine import create_tables, get_session, init_engine_from_url
    from shop_kernel.exceptions import ShopKernelError
    from shop_kernel.logging_config import configure_logging
    from shop_modules.payroll.service import PayrollService

    if args.verbose:
        configure_logging(level=logging.DEBUG)
    else:
        logging.disable(logging.CRITICAL)

    try:
        init_engine_from_url(args.db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return 1

    if args.command == "init-db":
        create_tables()
        print("  Tables created")
        return 0

    session = get_session()
    try:
        service = PayrollService(session, config=get_active_config(args.config))
        return COMMANDS[args.command](service, args)
    except (ShopKernelError, ValueError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
