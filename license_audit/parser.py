"""Line classifier that turns a detailed permission report into a `PermissionSet`.

Report exports vary in whitespace and column layout, so lines are recognized
by token shape rather than by position. A permission line is an object type
immediately followed by an id, a range, or `quantity from to`, optionally
followed by compact `RIMDX` flags:

    TableData   10   50000   50009   RIMDX
    Page        50000..50099         X
    Codeunit    50100-50199          X

Role headers (`Role: NAME`, `Permission Set: NAME`, or the `Object
Assignment` heading) open a block whose grants are attributed to that role.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidRangeError, UnexpectedEofError, UnknownObjectTypeError
from .models import DataIssue, IdRange, ObjectType, PermissionGrant, PermissionSet
from .normalize import (
    ID_KINDS,
    TokenKind,
    build_range,
    classify_token,
    is_dangling_range,
    parse_flags,
    parse_range_token,
    tokenize_line,
)

DEFAULT_ENCODING = "cp1252"

_ROLE_HEADER_RE = re.compile(
    r"^(?:role(?:\s+(?:id|name))?|permission\s*set)\s*:\s*(?P<name>\S.*?)\s*$",
    re.IGNORECASE,
)
_BLOCK_HEADINGS = frozenset({"object assignment"})
_STOP_HEADINGS = frozenset({"module objects and permissions"})


class _State(enum.Enum):
    EXPECT_ROLE_OR_PERMISSION = "expect_role_or_permission"
    IN_ROLE_BLOCK = "in_role_block"


@dataclass(slots=True)
class _LineSpec:
    """Recognized pieces of one permission line, before policy is applied."""

    object_type: ObjectType
    id_tokens: list[str]
    flag_tokens: list[str]


class _Incomplete(Exception):
    """Raised for a permission line that stops short (type without id, dangling range)."""

    def __init__(self, message: str, *, dangling_range: bool) -> None:
        super().__init__(message)
        self.dangling_range = dangling_range


def _role_name(line: str) -> str | None:
    """Return the role name when `line` opens a role block."""

    stripped = line.strip()
    if " ".join(stripped.split()).casefold() in _BLOCK_HEADINGS:
        return stripped
    match = _ROLE_HEADER_RE.match(stripped)
    if match is None:
        return None
    return match.group("name")


def _is_stop_heading(line: str) -> bool:
    return " ".join(line.split()).casefold() in _STOP_HEADINGS


def _looks_like_permission_line(head: str, kinds: list[TokenKind]) -> bool:
    """Return whether an unknown leading word sits on a line shaped like a grant.

    Requiring both an id token and a flag token keeps metadata such as
    `Users 25` or `Version 22` from being reported as unknown object types.
    """

    if not head[:1].isalpha() or not kinds:
        return False
    if kinds[0] not in (TokenKind.ID, TokenKind.RANGE, TokenKind.WILDCARD):
        return False
    if TokenKind.FLAGS not in kinds:
        return False
    return all(kind in ID_KINDS or kind is TokenKind.FLAGS for kind in kinds)


def _split_line(tokens: list[str], *, line_number: int) -> _LineSpec | None:
    """Split a tokenized line into type, id and flag tokens.

    Returns None for lines that are not permission lines. Raises `_Incomplete`
    when the line starts like a permission line but stops short.
    """

    head, *rest = tokens
    kinds = [classify_token(token) for token in rest]
    object_type = ObjectType.from_token(head)

    if object_type is None:
        if _looks_like_permission_line(head, kinds):
            raise UnknownObjectTypeError(head, line_number=line_number)
        return None

    if not rest:
        raise _Incomplete(f"{object_type} line has no object id", dangling_range=False)
    if kinds[0] not in ID_KINDS:
        return None

    split_at = 0
    while split_at < len(kinds) and kinds[split_at] in ID_KINDS:
        split_at += 1

    # A lone `-` or `..` after a complete id is an empty flag column.
    complete = split_at
    while complete > 0 and kinds[complete - 1] is TokenKind.SEPARATOR:
        complete -= 1
    if 0 < complete < split_at and not is_dangling_range(rest[complete - 1]):
        split_at = complete

    id_tokens = rest[:split_at]
    flag_tokens = rest[split_at:]
    if any(kind not in (TokenKind.FLAGS, TokenKind.SEPARATOR) for kind in kinds[split_at:]):
        return None

    if is_dangling_range(id_tokens[-1]):
        raise _Incomplete(f"{object_type} range {' '.join(id_tokens)!r} has no end", dangling_range=True)
    return _LineSpec(object_type=object_type, id_tokens=id_tokens, flag_tokens=flag_tokens)


def _resolve_ids(spec: _LineSpec, *, line_number: int, swap_reversed: bool) -> tuple[IdRange, list[DataIssue]]:
    """Turn the id tokens of a permission line into one range.

    Accepted shapes: `id`, `low..high`, `*`, `from to`, `quantity from to` and
    `quantity low..high`. Id `0` on its own grants every object of the type.
    """

    tokens = spec.id_tokens
    kinds = [classify_token(token) for token in tokens]

    if TokenKind.MALFORMED_RANGE in kinds or TokenKind.SEPARATOR in kinds:
        raise InvalidRangeError(f"malformed id range {' '.join(tokens)!r}", line_number=line_number)

    if kinds == [TokenKind.WILDCARD] or tokens == ["0"]:
        return IdRange.everything(), []
    if kinds in ([TokenKind.ID], [TokenKind.RANGE]):
        return parse_range_token(tokens[0], line_number=line_number, swap_reversed=swap_reversed)
    if kinds == [TokenKind.ID, TokenKind.ID]:
        return build_range(int(tokens[0]), int(tokens[1]), line_number=line_number, swap_reversed=swap_reversed)

    if kinds == [TokenKind.ID, TokenKind.ID, TokenKind.ID]:
        id_range, issues = build_range(
            int(tokens[1]),
            int(tokens[2]),
            line_number=line_number,
            swap_reversed=swap_reversed,
        )
    elif kinds == [TokenKind.ID, TokenKind.RANGE]:
        id_range, issues = parse_range_token(tokens[1], line_number=line_number, swap_reversed=swap_reversed)
    else:
        raise InvalidRangeError(f"ambiguous object ids {' '.join(tokens)!r}", line_number=line_number)

    quantity = int(tokens[0])
    if quantity != len(id_range):
        issues.append(
            DataIssue(
                code="quantity_mismatch",
                message=f"Quantity {quantity} does not match range {id_range} ({len(id_range)} objects)",
                line=line_number,
            )
        )
    return id_range, issues


def _last_content_line(lines: list[str]) -> int:
    """Return the 1-based number of the last non-blank line (0 for empty input)."""

    for index in range(len(lines), 0, -1):
        if lines[index - 1].strip():
            return index
    return 0


def parse_report(text: str, *, swap_reversed_ranges: bool = True) -> PermissionSet:
    """Parse permission report text into grants in report order.

    With `swap_reversed_ranges` (the default) a range written high-to-low is
    read in the right order and flagged as a `range_swapped` issue; without it
    every such range raises `InvalidRangeError`.
    """

    lines = text.lstrip("\ufeff").splitlines()
    final_line = _last_content_line(lines)

    state = _State.EXPECT_ROLE_OR_PERMISSION
    role: str | None = None
    block_grants = 0
    last_parsed = 0
    stopped = False
    grants: list[PermissionGrant] = []
    issues: list[DataIssue] = []

    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue

        if _is_stop_heading(line):
            # Module-level listings that follow use a different layout.
            stopped = True
            break

        role_name = _role_name(line)
        if role_name is not None:
            state = _State.IN_ROLE_BLOCK
            role = role_name
            block_grants = 0
            last_parsed = line_number
            continue

        try:
            spec = _split_line(tokenize_line(line), line_number=line_number)
        except _Incomplete as exc:
            if line_number == final_line:
                raise UnexpectedEofError(str(exc), last_line=last_parsed) from None
            if exc.dangling_range:
                raise InvalidRangeError(str(exc), line_number=line_number) from None
            spec = None

        if spec is None:
            if ObjectType.from_token(line.split()[0]) is not None:
                issues.append(
                    DataIssue(
                        code="ambiguous_line_skipped",
                        message=f"Line names an object type but is not a permission line: {line.strip()!r}",
                        line=line_number,
                    )
                )
            continue

        id_range, range_issues = _resolve_ids(spec, line_number=line_number, swap_reversed=swap_reversed_ranges)
        issues.extend(range_issues)
        grants.append(
            PermissionGrant(
                object_type=spec.object_type,
                id_range=id_range,
                flags=parse_flags(spec.flag_tokens),
                source_role=role if state is _State.IN_ROLE_BLOCK else None,
                line_number=line_number,
            )
        )
        block_grants += 1
        last_parsed = line_number

    if not stopped and state is _State.IN_ROLE_BLOCK and block_grants == 0:
        raise UnexpectedEofError(f"role {role!r} has no permission lines", last_line=last_parsed)

    return PermissionSet(grants=tuple(grants), issues=tuple(issues))


def read_report(
    path: str | Path,
    *,
    encoding: str = DEFAULT_ENCODING,
    swap_reversed_ranges: bool = True,
) -> PermissionSet:
    """Read a permission report file once and parse it.

    Bytes the encoding leaves undefined (0x81 in cp1252, for example) decode
    to U+FFFD instead of failing the whole report.
    """

    text = Path(path).read_bytes().decode(encoding, errors="replace")
    return parse_report(text, swap_reversed_ranges=swap_reversed_ranges)
