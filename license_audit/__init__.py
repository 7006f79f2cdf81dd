"""Public API exports for the permission report parser and license reconciliation."""

from .errors import (
    DuplicateObjectError,
    InvalidObjectIdError,
    InvalidRangeError,
    InventoryError,
    ParseError,
    SheetSelectionError,
    UnexpectedEofError,
    UnknownInventoryTypeError,
    UnknownObjectTypeError,
    UnrecognizedHeaderError,
)
from .inventory import ObjectRow, build_inventory, read_inventory, read_object_rows
from .models import (
    CoverageResult,
    CoverageStatus,
    DataIssue,
    IdRange,
    InventoryObject,
    ObjectInventory,
    ObjectType,
    PermissionFlags,
    PermissionGrant,
    PermissionSet,
)
from .parser import parse_report, read_report
from .reconcile import (
    BASE_GRANTS,
    DEFAULT_CHECK_RANGE,
    CoverageSummary,
    gaps,
    licensable_scope,
    reconcile,
    required_flags,
    summarize,
)

__version__ = "0.1.0"

__all__ = [
    "BASE_GRANTS",
    "CoverageResult",
    "CoverageStatus",
    "CoverageSummary",
    "DEFAULT_CHECK_RANGE",
    "DataIssue",
    "DuplicateObjectError",
    "IdRange",
    "InvalidObjectIdError",
    "InvalidRangeError",
    "InventoryError",
    "InventoryObject",
    "ObjectInventory",
    "ObjectRow",
    "ObjectType",
    "ParseError",
    "PermissionFlags",
    "PermissionGrant",
    "PermissionSet",
    "SheetSelectionError",
    "UnexpectedEofError",
    "UnknownInventoryTypeError",
    "UnknownObjectTypeError",
    "UnrecognizedHeaderError",
    "build_inventory",
    "gaps",
    "licensable_scope",
    "parse_report",
    "read_inventory",
    "read_object_rows",
    "read_report",
    "reconcile",
    "required_flags",
    "summarize",
]
