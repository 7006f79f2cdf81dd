"""Token- and cell-level normalization helpers used by the report and object readers."""

from __future__ import annotations

import enum
import re

from .errors import InvalidObjectIdError, InvalidRangeError, UnknownInventoryTypeError
from .models import DataIssue, IdRange, ObjectType, PermissionFlags

_SPACED_SEPARATOR_RE = re.compile(r"(?<=\d)\s*(\.\.|-)\s*(?=\d)")
_ID_RE = re.compile(r"^\d+$")
_RANGE_RE = re.compile(r"^(\d+)(?:\.\.|-)(\d+)$")
_RANGE_LIKE_RE = re.compile(r"^[\d.\-]*\d[\d.\-]*$")
_FLAGS_RE = re.compile(r"^[RIMDX.\-]+$", re.IGNORECASE)
_SEPARATORS = frozenset({"-", ".."})
_WILDCARD = "*"


class TokenKind(enum.Enum):
    ID = "id"
    RANGE = "range"
    MALFORMED_RANGE = "malformed_range"
    SEPARATOR = "separator"
    WILDCARD = "wildcard"
    FLAGS = "flags"
    WORD = "word"


ID_KINDS = frozenset(
    {
        TokenKind.ID,
        TokenKind.RANGE,
        TokenKind.MALFORMED_RANGE,
        TokenKind.SEPARATOR,
        TokenKind.WILDCARD,
    }
)


def tokenize_line(line: str) -> list[str]:
    """Split a report line on whitespace, gluing `50000 .. 50099` into one token."""

    return _SPACED_SEPARATOR_RE.sub(r"\1", line.strip()).split()


def classify_token(token: str) -> TokenKind:
    """Return the grammatical kind of one report token."""

    if token == _WILDCARD:
        return TokenKind.WILDCARD
    if token in _SEPARATORS:
        return TokenKind.SEPARATOR
    if _ID_RE.match(token):
        return TokenKind.ID
    if _RANGE_RE.match(token):
        return TokenKind.RANGE
    if _RANGE_LIKE_RE.match(token):
        return TokenKind.MALFORMED_RANGE
    if _FLAGS_RE.match(token):
        return TokenKind.FLAGS
    return TokenKind.WORD


def is_dangling_range(token: str) -> bool:
    """Return whether a range token stops right after its separator (`50000..`)."""

    return token in _SEPARATORS or (
        classify_token(token) is TokenKind.MALFORMED_RANGE and token.endswith(("-", ".."))
    )


def parse_flags(tokens: list[str]) -> PermissionFlags:
    """Union the flags of one or more compact flag tokens. No tokens means no permission."""

    flags = PermissionFlags.NONE
    for token in tokens:
        flags |= PermissionFlags.from_letters(token)
    return flags


def build_range(
    low: int,
    high: int,
    *,
    line_number: int,
    swap_reversed: bool,
) -> tuple[IdRange, list[DataIssue]]:
    """Build an id range, applying the reversed-range policy consistently."""

    if low <= high:
        return IdRange(low, high), []

    if not swap_reversed:
        raise InvalidRangeError(
            f"range start {low} exceeds range end {high}",
            line_number=line_number,
        )

    issue = DataIssue(
        code="range_swapped",
        message=f"Reversed range {low}..{high} was read as {high}..{low}",
        line=line_number,
    )
    return IdRange(high, low), [issue]


def parse_range_token(token: str, *, line_number: int, swap_reversed: bool) -> tuple[IdRange, list[DataIssue]]:
    """Parse a single id (`50000`) or a joined range token (`50000..50099`, `50000-50099`)."""

    if _ID_RE.match(token):
        return IdRange.single(int(token)), []

    match = _RANGE_RE.match(token)
    if match is None:
        raise InvalidRangeError(f"malformed id range {token!r}", line_number=line_number)
    return build_range(
        int(match.group(1)),
        int(match.group(2)),
        line_number=line_number,
        swap_reversed=swap_reversed,
    )


def normalize_object_type(value: object, *, row: int) -> ObjectType:
    """Map an object-list type cell to `ObjectType` by exact, case-insensitive name."""

    if isinstance(value, str):
        object_type = ObjectType.from_token(value)
        if object_type is not None:
            return object_type
    raise UnknownInventoryTypeError(row, value)


def normalize_object_id(value: object, *, row: int) -> int:
    """Coerce a spreadsheet id cell to int.

    Spreadsheets hand back ints, integral floats or digit strings depending
    on how the export was produced; all three are accepted.
    """

    if isinstance(value, bool):
        raise InvalidObjectIdError(row, value)
    if isinstance(value, int):
        object_id = value
    elif isinstance(value, float) and value.is_integer():
        object_id = int(value)
    elif isinstance(value, str) and _ID_RE.match(value.strip()):
        object_id = int(value.strip())
    else:
        raise InvalidObjectIdError(row, value)

    if object_id < 0:
        raise InvalidObjectIdError(row, value)
    return object_id


def normalize_object_name(value: object) -> str:
    """Trim a name cell, collapsing empty values to an empty string."""

    if value is None:
        return ""
    return str(value).strip()


def normalize_header(value: object) -> str:
    """Normalize header cells so header matching is resilient to formatting."""

    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def is_blank_cell(value: object) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")
