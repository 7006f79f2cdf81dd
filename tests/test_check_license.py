"""Tests for the license check runner and its report renderings."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from check_license import EXIT_FILE_ERROR, EXIT_INPUT_ERROR, EXIT_OK, main, run_check
from license_audit.models import CoverageResult, CoverageStatus, InventoryObject, ObjectType, PermissionFlags
from license_audit.render import (
    MISSING_PERMISSIONS_HEADER,
    build_report,
    render_line,
    render_lines,
    write_json_report,
    write_missing_permissions_csv,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
REPORT = PROJECT_ROOT / "data" / "permission_report.txt"
OBJECTS = PROJECT_ROOT / "data" / "objects.csv"


def _result(object_type: ObjectType, object_id: int, status: CoverageStatus, letters: str = "") -> CoverageResult:
    return CoverageResult(
        object=InventoryObject(object_type, object_id, f"{object_type} {object_id}"),
        status=status,
        matched_flags=PermissionFlags.from_letters(letters),
    )


def test_run_check_on_fixtures_classifies_licensable_objects() -> None:
    """Only licensable types inside 50000..99999 are checked by default."""
    outcome = run_check(license_path=REPORT, objects_path=OBJECTS)

    assert outcome.summary == {
        "total": 10,
        "fully_licensed": 6,
        "partially_licensed": 1,
        "unlicensed": 3,
    }
    status_by_key = {result.object.key: result.status for result in outcome.results}
    assert status_by_key[(ObjectType.TABLE_DATA, 50021)] is CoverageStatus.PARTIALLY_LICENSED
    assert status_by_key[(ObjectType.CODEUNIT, 60000)] is CoverageStatus.UNLICENSED
    assert status_by_key[(ObjectType.XMLPORT, 50202)] is CoverageStatus.FULLY_LICENSED
    assert (ObjectType.TABLE, 50000) not in status_by_key


def test_run_check_all_objects_includes_unlicensed_types() -> None:
    outcome = run_check(license_path=REPORT, objects_path=OBJECTS, check_range=None)

    assert outcome.summary["total"] == 12
    assert outcome.summary["unlicensed"] == 5


def test_main_prints_one_line_per_object_and_summary(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["--license", str(REPORT), "--objects", str(OBJECTS)])

    out = capsys.readouterr().out.splitlines()
    assert exit_code == EXIT_OK
    assert len(out) == 11
    assert sum(line.startswith("!!") for line in out) == 4
    assert out[-1] == "10 objects checked: 6 fully licensed, 1 partially licensed, 3 unlicensed"


def test_main_gaps_only_writes_missing_csv_and_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    missing_csv = tmp_path / "missing-permissions.csv"
    json_path = tmp_path / "output" / "report.json"

    exit_code = main(
        [
            "-l",
            str(REPORT),
            "-o",
            str(OBJECTS),
            "--gaps-only",
            "--missing-csv",
            str(missing_csv),
            "--json",
            str(json_path),
        ]
    )

    out = capsys.readouterr().out
    assert exit_code == EXIT_OK
    assert "Wrote 4 missing permissions" in out
    assert "Bin Overview" not in out

    with missing_csv.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == MISSING_PERMISSIONS_HEADER
    assert [row[:3] for row in rows[1:]] == [
        ["TableData", "50021", "50021"],
        ["Report", "50150", "50150"],
        ["Codeunit", "60000", "60000"],
        ["Query", "50500", "50500"],
    ]

    report = json.loads(json_path.read_text(encoding="utf-8"))
    assert report["summary"]["total"] == 10
    assert len(report["results"]) == 10
    assert "Base license" in report["metadata"]["roles"]
    assert report["results"][1] == {
        "object_type": "TableData",
        "object_id": 50021,
        "object_name": "Bin Snapshot",
        "status": "PartiallyLicensed",
        "matched_flags": "R",
        "source_roles": ["WAREHOUSE"],
    }


def test_main_reports_no_missing_objects(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    report_path = tmp_path / "report.txt"
    report_path.write_text("Role: ALL\nPage * X\n", encoding="cp1252")
    objects_path = tmp_path / "objects.csv"
    objects_path.write_text("Object Type,Object ID,Object Name\nPage,70000,Card\n", encoding="utf-8")

    exit_code = main(["-l", str(report_path), "-o", str(objects_path), "--no-base-grants"])

    assert exit_code == EXIT_OK
    assert capsys.readouterr().out.splitlines()[-1] == "No missing objects found!"


def test_main_parse_error_exits_non_zero_with_line(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    report_path = tmp_path / "report.txt"
    report_path.write_text("Role: A\nTabel 50000 RIMD\n", encoding="cp1252")

    exit_code = main(["-l", str(report_path), "-o", str(OBJECTS)])

    captured = capsys.readouterr()
    assert exit_code == EXIT_INPUT_ERROR
    assert captured.out == ""
    assert "unknown object type" in captured.err
    assert "line 2" in captured.err


def test_main_strict_ranges_rejects_reversed_range(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    report_path = tmp_path / "report.txt"
    report_path.write_text("TableData 50100-50000 RIMD\n", encoding="cp1252")

    assert main(["-l", str(report_path), "-o", str(OBJECTS)]) == EXIT_OK
    assert "range_swapped" in capsys.readouterr().err

    assert main(["-l", str(report_path), "-o", str(OBJECTS), "--strict-ranges"]) == EXIT_INPUT_ERROR
    assert "invalid range" in capsys.readouterr().err


def test_main_inventory_error_names_objects_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    objects_path = tmp_path / "objects.csv"
    objects_path.write_text("Object Type,Object ID,Object Name\nPage,50000,A\nPage,50000,B\n", encoding="utf-8")

    exit_code = main(["-l", str(REPORT), "-o", str(objects_path)])

    err = capsys.readouterr().err
    assert exit_code == EXIT_INPUT_ERROR
    assert str(objects_path) in err
    assert "duplicate object Page 50000" in err


def test_main_missing_file_exits_with_file_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = main(["-l", str(tmp_path / "absent.txt"), "-o", str(OBJECTS)])

    assert exit_code == EXIT_FILE_ERROR
    assert capsys.readouterr().err.startswith("error: ")


def test_main_file_errors_name_the_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    missing_objects = tmp_path / "absent.csv"
    assert main(["-l", str(REPORT), "-o", str(missing_objects)]) == EXIT_FILE_ERROR
    assert str(missing_objects) in capsys.readouterr().err

    latin_objects = tmp_path / "objects.csv"
    latin_objects.write_bytes(b"Object Type,Object ID,Object Name\nPage,50000,Caf\xe9 \x81\n")
    assert main(["-l", str(REPORT), "-o", str(latin_objects)]) == EXIT_FILE_ERROR
    assert str(latin_objects) in capsys.readouterr().err


def test_main_reads_report_with_undefined_windows_1252_byte(tmp_path: Path) -> None:
    report_path = tmp_path / "report.txt"
    report_path.write_bytes(b"Licensed to: Caf\x81\nRole: ALL\nPage * X\n")

    assert main(["-l", str(report_path), "-o", str(OBJECTS)]) == EXIT_OK


def test_unknown_encoding_is_a_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-l", str(REPORT), "-o", str(OBJECTS), "--encoding", "no-such-codec"])

    assert excinfo.value.code == 2
    assert "unknown encoding" in capsys.readouterr().err


def test_version_flag_exits_cleanly(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])

    assert excinfo.value.code == 0
    assert "0.1.0" in capsys.readouterr().out


def test_render_line_flags_gaps() -> None:
    full = render_line(_result(ObjectType.PAGE, 50000, CoverageStatus.FULLY_LICENSED, "X"))
    partial = render_line(_result(ObjectType.TABLE_DATA, 50001, CoverageStatus.PARTIALLY_LICENSED, "R"))

    assert full.startswith("   FullyLicensed")
    assert partial.startswith("!! PartiallyLicensed")
    assert partial.endswith("TableData 50001")


def test_render_line_aligns_long_type_names() -> None:
    short = render_line(_result(ObjectType.PAGE, 50000, CoverageStatus.UNLICENSED))
    long = render_line(_result(ObjectType.PERMISSION_SET_EXTENSION, 50000, CoverageStatus.UNLICENSED))

    assert short.index("50000") == long.index("50000")


def test_render_lines_gaps_only_preserves_order() -> None:
    results = [
        _result(ObjectType.PAGE, 3, CoverageStatus.UNLICENSED),
        _result(ObjectType.PAGE, 1, CoverageStatus.FULLY_LICENSED, "X"),
        _result(ObjectType.PAGE, 2, CoverageStatus.UNLICENSED),
    ]

    lines = render_lines(results, gaps_only=True)

    assert len(lines) == 2
    assert lines[0].endswith("Page 3")
    assert lines[1].endswith("Page 2")


def test_missing_permissions_csv_spells_xmlport_for_import(tmp_path: Path) -> None:
    output_path = tmp_path / "missing.csv"
    written = write_missing_permissions_csv(
        [_result(ObjectType.XMLPORT, 50300, CoverageStatus.UNLICENSED)],
        output_path=output_path,
    )

    assert written == 1
    lines = output_path.read_text(encoding="utf-8").splitlines()
    assert lines[1] == "XMLPort,50300,50300,Direct,Direct,Direct,Direct,Direct,50000 - 99999,1,0,0"


def test_write_json_report_writes_valid_json(tmp_path: Path) -> None:
    """`write_json_report` should create parent directory and emit valid JSON."""
    output_path = tmp_path / "output" / "report.json"
    report = build_report(
        [_result(ObjectType.PAGE, 1, CoverageStatus.FULLY_LICENSED, "X")],
        summary={"total": 1, "fully_licensed": 1, "partially_licensed": 0, "unlicensed": 0},
        metadata={"generated_at_utc": "2026-01-01T00:00:00+00:00"},
    )

    write_json_report(report, output_path=output_path)

    parsed = json.loads(output_path.read_text(encoding="utf-8"))
    assert parsed == report
    assert parsed["issues"] == []
