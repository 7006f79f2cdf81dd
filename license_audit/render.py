"""Terminal, JSON and CSV renderings of reconciliation results."""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from .models import CoverageResult, DataIssue, IdRange, ObjectType
from .reconcile import DEFAULT_CHECK_RANGE, CoverageSummary, gaps

MISSING_PERMISSIONS_HEADER = [
    "ObjectType",
    "FromObjectID",
    "ToObjectID",
    "Read",
    "Insert",
    "Modify",
    "Delete",
    "Execute",
    "AvailableRange",
    "Used",
    "ObjectTypeRemaining",
    "CompanyObjectPermissionID",
]

# The permission import spells this type with a capital P.
_IMPORT_TYPE_NAMES = {ObjectType.XMLPORT: "XMLPort"}
_TYPE_WIDTH = max(len(object_type.value) for object_type in ObjectType)


def render_line(result: CoverageResult) -> str:
    """Format one result; gaps are prefixed with `!!`."""

    marker = "!!" if result.is_gap else "  "
    item = result.object
    return (
        f"{marker} {result.status.value:<17} {item.object_type.value:<{_TYPE_WIDTH}} {item.object_id:>10}"
        f"  {result.matched_flags.letters:<5}  {item.object_name}"
    )


def render_lines(results: Iterable[CoverageResult], *, gaps_only: bool = False) -> list[str]:
    selected = gaps(results) if gaps_only else list(results)
    return [render_line(result) for result in selected]


def render_summary(summary: CoverageSummary) -> str:
    return (
        f"{summary['total']} objects checked: "
        f"{summary['fully_licensed']} fully licensed, "
        f"{summary['partially_licensed']} partially licensed, "
        f"{summary['unlicensed']} unlicensed"
    )


def render_issue(issue: DataIssue) -> str:
    location = f"line {issue.line}: " if issue.line is not None else ""
    return f"warning: {location}{issue.message} [{issue.code}]"


def _issue_to_dict(issue: DataIssue) -> dict[str, Any]:
    """Serialize a `DataIssue` into a JSON-friendly dictionary."""

    return {"code": issue.code, "message": issue.message, "line": issue.line}


def _result_to_dict(result: CoverageResult) -> dict[str, Any]:
    return {
        "object_type": result.object.object_type.value,
        "object_id": result.object.object_id,
        "object_name": result.object.object_name,
        "status": result.status.value,
        "matched_flags": result.matched_flags.letters,
        "source_roles": list(result.source_roles),
    }


def build_report(
    results: Sequence[CoverageResult],
    *,
    summary: CoverageSummary,
    issues: Iterable[DataIssue] = (),
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a JSON-serializable report payload."""

    return {
        "metadata": dict(metadata or {}),
        "summary": dict(summary),
        "results": [_result_to_dict(result) for result in results],
        "issues": [_issue_to_dict(issue) for issue in issues],
    }


def write_json_report(report: dict[str, Any], *, output_path: Path) -> None:
    """Write report JSON to disk."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def write_missing_permissions_csv(
    results: Iterable[CoverageResult],
    *,
    output_path: Path,
    check_range: IdRange = DEFAULT_CHECK_RANGE,
) -> int:
    """Write one company object permission row per gap. Returns the row count.

    The layout matches the company object permission import, one object per
    row with every permission column set to `Direct`.
    """

    missing = gaps(results)
    available_range = f"{check_range.low} - {check_range.high}"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle, lineterminator="\n")
        writer.writerow(MISSING_PERMISSIONS_HEADER)
        for result in missing:
            object_id = str(result.object.object_id)
            writer.writerow(
                [
                    _IMPORT_TYPE_NAMES.get(result.object.object_type, result.object.object_type.value),
                    object_id,
                    object_id,
                    *(["Direct"] * 5),
                    available_range,
                    "1",
                    "0",
                    "0",
                ]
            )
    return len(missing)
