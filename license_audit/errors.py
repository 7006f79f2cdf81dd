"""Fatal input errors raised while reading the permission report or object list."""

from __future__ import annotations

from .models import ObjectType


class ParseError(ValueError):
    """The permission report cannot be turned into a trustworthy grant list."""

    kind = "parse error"

    def __init__(self, message: str, *, line_number: int) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


class InvalidRangeError(ParseError):
    kind = "invalid range"


class UnknownObjectTypeError(ParseError):
    kind = "unknown object type"

    def __init__(self, token: str, *, line_number: int) -> None:
        super().__init__(f"unknown object type {token!r}", line_number=line_number)
        self.token = token


class UnexpectedEofError(ParseError):
    """Input ended in the middle of a role block or permission line.

    `line_number` is the last line that was parsed successfully (0 when
    nothing was parsed).
    """

    kind = "unexpected end of report"

    def __init__(self, message: str, *, last_line: int) -> None:
        super().__init__(f"{message} (last parsed line {last_line})", line_number=last_line)


class InventoryError(ValueError):
    """The object list cannot be turned into a unique object inventory."""

    kind = "inventory error"


class UnknownInventoryTypeError(InventoryError):
    kind = "unknown object type"

    def __init__(self, row: int, value: object) -> None:
        super().__init__(f"row {row}: unknown object type {value!r}")
        self.row = row
        self.value = value


class InvalidObjectIdError(InventoryError):
    kind = "invalid object id"

    def __init__(self, row: int, value: object) -> None:
        super().__init__(f"row {row}: object id is not a non-negative integer: {value!r}")
        self.row = row
        self.value = value


class DuplicateObjectError(InventoryError):
    kind = "duplicate object"

    def __init__(self, object_type: ObjectType, object_id: int, *, row: int | None = None) -> None:
        location = f"row {row}: " if row is not None else ""
        super().__init__(f"{location}duplicate object {object_type} {object_id}")
        self.object_type = object_type
        self.object_id = object_id
        self.row = row


class UnrecognizedHeaderError(InventoryError):
    kind = "unrecognized header"


class SheetSelectionError(InventoryError):
    kind = "sheet selection"
