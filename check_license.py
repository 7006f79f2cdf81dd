"""License coverage check runner.

This script parses a detailed permission report and an object export, checks
every licensable custom object against the granted permissions, and prints
one line per object. Gaps can additionally be written as a company object
permission CSV and the full result as JSON.
"""

from __future__ import annotations

import argparse
import codecs
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from license_audit import __version__
from license_audit.errors import InventoryError, ParseError
from license_audit.inventory import read_inventory
from license_audit.models import CoverageResult, IdRange, PermissionSet
from license_audit.parser import DEFAULT_ENCODING, read_report
from license_audit.reconcile import (
    BASE_GRANTS,
    DEFAULT_CHECK_RANGE,
    CoverageSummary,
    licensable_scope,
    reconcile,
    summarize,
)
from license_audit.render import (
    build_report,
    render_issue,
    render_lines,
    render_summary,
    write_json_report,
    write_missing_permissions_csv,
)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_FILE_ERROR = 2


@dataclass(slots=True)
class CheckOutcome:
    """Everything one run produced, ready for rendering."""

    permissions: PermissionSet
    results: list[CoverageResult]
    summary: CoverageSummary


def run_check(
    *,
    license_path: Path,
    objects_path: Path,
    sheet: str | None = None,
    encoding: str = DEFAULT_ENCODING,
    check_range: IdRange | None = DEFAULT_CHECK_RANGE,
    include_base_grants: bool = True,
    swap_reversed_ranges: bool = True,
) -> CheckOutcome:
    """Parse both inputs and reconcile them.

    `check_range=None` checks every object in the export instead of only
    licensable object types inside the custom range.
    """

    permissions = read_report(license_path, encoding=encoding, swap_reversed_ranges=swap_reversed_ranges)
    inventory = read_inventory(objects_path, sheet=sheet)

    if include_base_grants:
        permissions = permissions.extend(BASE_GRANTS)
    if check_range is not None:
        inventory = licensable_scope(inventory, check_range)

    results = reconcile(permissions, inventory)
    return CheckOutcome(permissions=permissions, results=results, summary=summarize(results))


def _report_metadata(args: argparse.Namespace, outcome: CheckOutcome) -> dict[str, Any]:
    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "license_path": str(args.license),
        "objects_path": str(args.objects),
        "check_range": None if args.all_objects else str(args.check_range),
        "base_grants_included": not args.no_base_grants,
        "roles": outcome.permissions.roles,
    }


def _check_range(text: str) -> IdRange:
    try:
        return IdRange.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid id range {text!r}: {exc}") from None


def _encoding(name: str) -> str:
    try:
        codecs.lookup(name)
    except LookupError:
        raise argparse.ArgumentTypeError(f"unknown encoding {name!r}") from None
    return name


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for a license check."""

    parser = argparse.ArgumentParser(
        description="Check an object export against a detailed permission report and list license gaps."
    )
    parser.add_argument(
        "-l",
        "--license",
        type=Path,
        required=True,
        help="Path to detailed permission report text file",
    )
    parser.add_argument("-o", "--objects", type=Path, required=True, help="Path to exported objects (xlsx or csv)")
    parser.add_argument("--sheet", help="Worksheet to read when the workbook has several sheets")
    parser.add_argument(
        "--encoding",
        type=_encoding,
        default=DEFAULT_ENCODING,
        help="Text encoding of the permission report",
    )
    parser.add_argument(
        "--check-range",
        type=_check_range,
        default=DEFAULT_CHECK_RANGE,
        help="Object id range to check, e.g. 50000..99999",
    )
    parser.add_argument(
        "--all-objects",
        action="store_true",
        help="Check every exported object, not only licensable types inside the check range",
    )
    parser.add_argument(
        "--no-base-grants",
        action="store_true",
        help="Do not add the free custom-object range every license includes",
    )
    parser.add_argument(
        "--strict-ranges",
        action="store_true",
        help="Fail on reversed id ranges instead of reading them in order",
    )
    parser.add_argument("--gaps-only", action="store_true", help="Only print objects that are not fully licensed")
    parser.add_argument("--missing-csv", type=Path, help="Write missing permissions as company object permission CSV")
    parser.add_argument("--json", type=Path, dest="json_output", help="Write the full result as JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for command-line execution."""

    args = _parse_args(argv)
    try:
        outcome = run_check(
            license_path=args.license,
            objects_path=args.objects,
            sheet=args.sheet,
            encoding=args.encoding,
            check_range=None if args.all_objects else args.check_range,
            include_base_grants=not args.no_base_grants,
            swap_reversed_ranges=not args.strict_ranges,
        )
    except ParseError as exc:
        print(f"error: {args.license}: {exc.kind}: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except InventoryError as exc:
        print(f"error: {args.objects}: {exc.kind}: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except (UnicodeDecodeError, BadZipFile) as exc:
        print(f"error: {args.objects}: {exc}", file=sys.stderr)
        return EXIT_FILE_ERROR
    except OSError as exc:
        source = exc.filename if exc.filename is not None else args.license
        print(f"error: {source}: {exc.strerror or exc}", file=sys.stderr)
        return EXIT_FILE_ERROR

    for issue in outcome.permissions.issues:
        print(render_issue(issue), file=sys.stderr)

    for line in render_lines(outcome.results, gaps_only=args.gaps_only):
        print(line)
    print(render_summary(outcome.summary))

    if outcome.summary["total"] == outcome.summary["fully_licensed"]:
        print("No missing objects found!")
    elif args.missing_csv is not None:
        written = write_missing_permissions_csv(
            outcome.results,
            output_path=args.missing_csv,
            check_range=args.check_range,
        )
        print(f"Wrote {written} missing permissions to {args.missing_csv}")

    if args.json_output is not None:
        report = build_report(
            outcome.results,
            summary=outcome.summary,
            issues=outcome.permissions.issues,
            metadata=_report_metadata(args, outcome),
        )
        write_json_report(report, output_path=args.json_output)
        print(f"Wrote license check report: {args.json_output}")

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
