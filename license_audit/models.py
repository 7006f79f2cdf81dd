"""Core typed models shared by the report parser, inventory and reconciler."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

MAX_OBJECT_ID = 2_147_483_647


class ObjectType(enum.Enum):
    """Application object kinds found in permission reports and object exports."""

    TABLE_DATA = "TableData"
    TABLE = "Table"
    PAGE = "Page"
    REPORT = "Report"
    CODEUNIT = "Codeunit"
    XMLPORT = "XMLport"
    QUERY = "Query"
    MENU_SUITE = "MenuSuite"
    SYSTEM = "System"
    FIELD_NUMBER = "FieldNumber"
    PAGE_EXTENSION = "PageExtension"
    TABLE_EXTENSION = "TableExtension"
    ENUM = "Enum"
    ENUM_EXTENSION = "EnumExtension"
    PROFILE = "Profile"
    PROFILE_EXTENSION = "ProfileExtension"
    PERMISSION_SET = "PermissionSet"
    PERMISSION_SET_EXTENSION = "PermissionSetExtension"
    REPORT_EXTENSION = "ReportExtension"

    @classmethod
    def from_token(cls, token: str) -> ObjectType | None:
        """Return the type whose name equals `token` ignoring case, else None."""

        return _TYPES_BY_LOWER_NAME.get(token.strip().casefold())

    @property
    def is_licensed(self) -> bool:
        """Return whether objects of this type consume license permissions."""

        return self in _LICENSED_TYPES

    def __str__(self) -> str:
        return self.value


_TYPES_BY_LOWER_NAME = {object_type.value.casefold(): object_type for object_type in ObjectType}

_LICENSED_TYPES = frozenset(
    {
        ObjectType.TABLE_DATA,
        ObjectType.PAGE,
        ObjectType.REPORT,
        ObjectType.CODEUNIT,
        ObjectType.XMLPORT,
        ObjectType.QUERY,
    }
)


class PermissionFlags(enum.Flag):
    """Capability bits granted on an object. Flags only ever accumulate."""

    NONE = 0
    READ = enum.auto()
    INSERT = enum.auto()
    MODIFY = enum.auto()
    DELETE = enum.auto()
    EXECUTE = enum.auto()

    @classmethod
    def from_letters(cls, letters: str) -> PermissionFlags:
        """Build flags from compact notation such as `RIMD`, `rimdx` or `R-M--`."""

        flags = cls.NONE
        for letter in letters.upper():
            if letter in _PLACEHOLDER_LETTERS:
                continue
            try:
                flags |= _FLAGS_BY_LETTER[letter]
            except KeyError:
                raise ValueError(f"Unknown permission letter: {letter!r}") from None
        return flags

    @property
    def letters(self) -> str:
        """Return the compact `RIMDX` notation, `-` for no permission."""

        text = "".join(letter for letter, flag in _FLAGS_BY_LETTER.items() if flag in self)
        return text or "-"

    def covers(self, other: PermissionFlags) -> bool:
        """Return whether every flag of `other` is also set here."""

        return other & self == other


_FLAGS_BY_LETTER = {
    "R": PermissionFlags.READ,
    "I": PermissionFlags.INSERT,
    "M": PermissionFlags.MODIFY,
    "D": PermissionFlags.DELETE,
    "X": PermissionFlags.EXECUTE,
}
_PLACEHOLDER_LETTERS = frozenset("-.")


@dataclass(frozen=True, slots=True)
class IdRange:
    """Closed interval of object ids. A single id has `low == high`."""

    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low < 0 or self.high < 0:
            raise ValueError(f"Object ids cannot be negative: {self.low}..{self.high}")
        if self.low > self.high:
            raise ValueError(f"Range start exceeds range end: {self.low}..{self.high}")

    @classmethod
    def single(cls, object_id: int) -> IdRange:
        return cls(object_id, object_id)

    @classmethod
    def everything(cls) -> IdRange:
        """Range covering every possible object id (wildcard grants)."""

        return cls(0, MAX_OBJECT_ID)

    @classmethod
    def parse(cls, text: str) -> IdRange:
        """Parse `50000..99999` style text, used for CLI options."""

        low, separator, high = text.strip().partition("..")
        if not separator:
            return cls.single(int(low))
        return cls(int(low), int(high))

    def __contains__(self, object_id: object) -> bool:
        return isinstance(object_id, int) and self.low <= object_id <= self.high

    def __len__(self) -> int:
        return self.high - self.low + 1

    def __str__(self) -> str:
        if self.low == self.high:
            return str(self.low)
        return f"{self.low}..{self.high}"


@dataclass(frozen=True, slots=True)
class DataIssue:
    """Structured, non-fatal finding emitted while reading an input."""

    code: str
    message: str
    line: int | None = None


@dataclass(frozen=True, slots=True)
class PermissionGrant:
    """One permission entry: an object type and id range mapped to flags."""

    object_type: ObjectType
    id_range: IdRange
    flags: PermissionFlags
    source_role: str | None = None
    line_number: int | None = None

    def applies_to(self, object_type: ObjectType, object_id: int) -> bool:
        return self.object_type is object_type and object_id in self.id_range


@dataclass(frozen=True, slots=True)
class PermissionSet:
    """Grants in report order. Overlaps are kept, never merged."""

    grants: tuple[PermissionGrant, ...] = ()
    issues: tuple[DataIssue, ...] = ()

    def __iter__(self) -> Iterator[PermissionGrant]:
        return iter(self.grants)

    def __len__(self) -> int:
        return len(self.grants)

    @property
    def roles(self) -> list[str]:
        """Return role names in the order they first appear."""

        seen: dict[str, None] = {}
        for grant in self.grants:
            if grant.source_role is not None:
                seen.setdefault(grant.source_role, None)
        return list(seen)

    def extend(self, other: Iterable[PermissionGrant]) -> PermissionSet:
        """Return a new set with the grants of `other` appended."""

        return PermissionSet(grants=(*self.grants, *other), issues=self.issues)


@dataclass(frozen=True, slots=True)
class InventoryObject:
    """One application object listed in the object export."""

    object_type: ObjectType
    object_id: int
    object_name: str

    @property
    def key(self) -> tuple[ObjectType, int]:
        return (self.object_type, self.object_id)


@dataclass(frozen=True, slots=True)
class ObjectInventory:
    """Ordered object list, unique by `(object_type, object_id)`.

    Use `build_inventory` to construct one from raw rows; it enforces the
    uniqueness invariant.
    """

    objects: tuple[InventoryObject, ...] = ()

    def __iter__(self) -> Iterator[InventoryObject]:
        return iter(self.objects)

    def __len__(self) -> int:
        return len(self.objects)

    def get(self, object_type: ObjectType, object_id: int) -> InventoryObject | None:
        for item in self.objects:
            if item.key == (object_type, object_id):
                return item
        return None

    def filter(self, predicate: Callable[[InventoryObject], bool]) -> ObjectInventory:
        """Return a new inventory holding the objects accepted by `predicate`."""

        return ObjectInventory(objects=tuple(item for item in self.objects if predicate(item)))


class CoverageStatus(enum.StrEnum):
    FULLY_LICENSED = "FullyLicensed"
    PARTIALLY_LICENSED = "PartiallyLicensed"
    UNLICENSED = "Unlicensed"


@dataclass(frozen=True, slots=True)
class CoverageResult:
    """Coverage classification for one inventory object."""

    object: InventoryObject
    status: CoverageStatus
    matched_flags: PermissionFlags = PermissionFlags.NONE
    source_roles: tuple[str, ...] = field(default=())

    @property
    def is_gap(self) -> bool:
        """Return whether the object needs additional license coverage."""

        return self.status is not CoverageStatus.FULLY_LICENSED
