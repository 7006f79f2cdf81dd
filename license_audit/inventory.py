"""Object inventory construction and object-list readers (xlsx and csv)."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

import openpyxl

from .errors import DuplicateObjectError, SheetSelectionError, UnrecognizedHeaderError
from .models import InventoryObject, ObjectInventory
from .normalize import (
    is_blank_cell,
    normalize_header,
    normalize_object_id,
    normalize_object_name,
    normalize_object_type,
)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})


class ObjectRow(NamedTuple):
    """One raw data row of the object list. `source_row` is 1-based."""

    object_type: object
    object_id: object
    object_name: object
    source_row: int | None = None


@dataclass(frozen=True, slots=True)
class HeaderDefinition:
    """Accepted spellings of the three leading object-list columns."""

    object_type: frozenset[str]
    object_id: frozenset[str]
    object_name: frozenset[str]

    def matches(self, cells: Sequence[object]) -> bool:
        if len(cells) < 3:
            return False
        first, second, third = (normalize_header(cell) for cell in cells[:3])
        return first in self.object_type and second in self.object_id and third in self.object_name


_HEADER = HeaderDefinition(
    object_type=frozenset({"object type", "type"}),
    object_id=frozenset({"object id", "object no.", "id"}),
    object_name=frozenset({"object name", "name", "object caption"}),
)


def _leading_cells(cells: Sequence[object]) -> list[object]:
    """Return the first three cells, padding short rows with None."""

    leading = list(cells[:3])
    return [*leading, *([None] * (3 - len(leading)))]


def build_inventory(rows: Iterable[Sequence[object]]) -> ObjectInventory:
    """Validate raw `(type, id, name)` rows into an ordered, unique inventory.

    The build fails on the first bad row. Duplicates are an error rather than
    a merge, since keeping either copy could hide a licensing gap.
    """

    objects: list[InventoryObject] = []
    seen: set[tuple[object, int]] = set()

    for index, raw in enumerate(rows, start=1):
        row = raw if isinstance(raw, ObjectRow) else ObjectRow(*_leading_cells(raw))
        row_number = row.source_row if row.source_row is not None else index

        item = InventoryObject(
            object_type=normalize_object_type(row.object_type, row=row_number),
            object_id=normalize_object_id(row.object_id, row=row_number),
            object_name=normalize_object_name(row.object_name),
        )
        if item.key in seen:
            raise DuplicateObjectError(item.object_type, item.object_id, row=row_number)
        seen.add(item.key)
        objects.append(item)

    return ObjectInventory(objects=tuple(objects))


def _rows_after_header(numbered_rows: Iterable[tuple[int, Sequence[object]]], *, source: Path) -> list[ObjectRow]:
    """Skip leading blank rows, require the header, then collect non-blank data rows."""

    rows: list[ObjectRow] = []
    header_seen = False

    for row_number, cells in numbered_rows:
        if all(is_blank_cell(cell) for cell in cells):
            continue

        if not header_seen:
            if not _HEADER.matches(cells):
                found = " | ".join(normalize_header(cell) for cell in cells[:3])
                raise UnrecognizedHeaderError(
                    f"{source}: row {row_number}: expected header "
                    f"'Object type | Object id | Object name', found {found!r}"
                )
            header_seen = True
            continue

        rows.append(ObjectRow(*_leading_cells(cells), source_row=row_number))

    if not header_seen:
        raise UnrecognizedHeaderError(f"{source}: object list has no header row")
    return rows


def pick_sheet(sheet_names: Sequence[str], requested: str | None = None) -> str:
    """Return the sheet to read. Several sheets require an explicit choice."""

    if requested is not None:
        if requested not in sheet_names:
            raise SheetSelectionError(f"Sheet {requested!r} not found; available: {', '.join(sheet_names)}")
        return requested
    if not sheet_names:
        raise SheetSelectionError("Workbook has no sheets")
    if len(sheet_names) > 1:
        raise SheetSelectionError(f"Workbook has several sheets, choose one of: {', '.join(sheet_names)}")
    return sheet_names[0]


def read_workbook_rows(path: str | Path, *, sheet: str | None = None) -> list[ObjectRow]:
    """Read object rows from an Excel export."""

    source = Path(path)
    workbook = openpyxl.load_workbook(source, read_only=True, data_only=True)
    try:
        worksheet = workbook[pick_sheet(workbook.sheetnames, sheet)]
        numbered = enumerate(worksheet.iter_rows(values_only=True), start=1)
        return _rows_after_header(numbered, source=source)
    finally:
        workbook.close()


def read_csv_rows(path: str | Path) -> list[ObjectRow]:
    """Read object rows from a csv export."""

    source = Path(path)
    with source.open("r", encoding="utf-8-sig", newline="") as handle:
        numbered = enumerate(csv.reader(handle), start=1)
        return _rows_after_header(numbered, source=source)


def read_object_rows(path: str | Path, *, sheet: str | None = None) -> list[ObjectRow]:
    """Read object-list rows, dispatching on the file suffix."""

    source = Path(path)
    if source.suffix.lower() in EXCEL_SUFFIXES:
        return read_workbook_rows(source, sheet=sheet)
    return read_csv_rows(source)


def read_inventory(path: str | Path, *, sheet: str | None = None) -> ObjectInventory:
    return build_inventory(read_object_rows(path, sheet=sheet))
