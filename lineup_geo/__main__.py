"""Restaurant coordinate maintenance CLI."""

import argparse
import sys
from typing import Optional

from lineup_geo.core.config import Settings
from lineup_geo.core.db import (
    create_db_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from lineup_geo.core.geocoding.corrector import CoordinateCorrector
from lineup_geo.core.geocoding.validator import CoordinateValidator
from lineup_geo.core.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="python -m lineup_geo",
        description="Restaurant coordinate maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the restaurant table
  python -m lineup_geo init-db

  # Report restaurants with missing, out-of-area or in-water coordinates
  python -m lineup_geo validate

  # Repair them in place
  python -m lineup_geo fix --apply

  # Re-geocode restaurants that were never geocoded
  python -m lineup_geo regeocode --only-failed
""",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("init-db", help="Create database tables")

    validate_parser = subparsers.add_parser(
        "validate", help="Report invalid coordinates"
    )
    validate_parser.add_argument(
        "--limit", type=int, default=10, help="Number of issues to list"
    )

    fix_parser = subparsers.add_parser("fix", help="Repair invalid coordinates")
    fix_parser.add_argument(
        "--apply", action="store_true", help="Write changes (default is a dry run)"
    )

    regeocode_parser = subparsers.add_parser(
        "regeocode", help="Re-geocode restaurants from their addresses"
    )
    regeocode_parser.add_argument(
        "--only-failed",
        action="store_true",
        help="Only restaurants that were never geocoded successfully",
    )
    regeocode_parser.add_argument(
        "--fallback-to-repair",
        action="store_true",
        help="Repair results that stay in water instead of skipping them",
    )
    regeocode_parser.add_argument(
        "--dry-run", action="store_true", help="Don't write changes"
    )

    return parser


def print_audit(report: dict, limit: int) -> None:
    """Print an audit report."""
    counts = report["counts"]
    print("Validation Report:")
    print(f"  Total restaurants: {report['total']}")
    print(f"  Missing coordinates: {counts['missing']}")
    print(f"  Invalid type: {counts['invalid_type']}")
    print(f"  Out of bounds: {counts['out_of_bounds']}")
    print(f"  In water: {counts['in_water']}")
    print(f"  Valid: {counts['valid']}")

    in_water = [i for i in report["issues"] if i["water_region"]]
    if in_water:
        print(f"\nRestaurants in water (first {limit}):")
        for issue in in_water[:limit]:
            print(
                f"  - {issue['name']} ({issue['latitude']}, {issue['longitude']})"
                f" - {issue['water_region']}"
            )


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = Settings()
    configure_logging(level=config.LOG_LEVEL, json_logs=config.JSON_LOGS)

    engine = create_db_engine(args.database_url or config.DATABASE_URL)
    if args.command == "init-db":
        init_db(engine)
        print("Database tables created")
        return 0

    factory = create_session_factory(engine=engine)
    validator = CoordinateValidator.from_settings(config)

    with session_scope(factory) as session:
        corrector = CoordinateCorrector(db=session, validator=validator)

        if args.command == "validate":
            report = corrector.audit()
            print_audit(report, args.limit)
            return 0 if not report["issues"] else 2

        if args.command == "fix":
            summary = corrector.fix_invalid(dry_run=not args.apply)
            label = "Would fix" if summary["dry_run"] else "Fixed"
            print(f"{label}: {summary['fixed_count']}/{summary['invalid_count']}")
            print(f"Errors: {summary['failed_count']}")
            return 0 if not summary["failed_count"] else 1

        if args.command == "regeocode":
            summary = corrector.regeocode(
                only_failed=args.only_failed,
                dry_run=args.dry_run,
                fallback_to_repair=args.fallback_to_repair,
            )
            print("=" * 50)
            print(f"Processed: {summary['total']}")
            print(f"Fixed: {summary['fixed_count']}")
            print(f"Repaired: {summary['repaired_count']}")
            print(f"Skipped (no address): {summary['skipped_count']}")
            print(f"Found in water: {summary['in_water_before']}")
            print(f"Errors: {summary['error_count']}")
            print("=" * 50)
            return 0 if not summary["error_count"] else 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
