"""Reconciliation of permission grants against the object inventory."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import TypedDict

from .models import (
    CoverageResult,
    CoverageStatus,
    IdRange,
    InventoryObject,
    ObjectInventory,
    ObjectType,
    PermissionFlags,
    PermissionGrant,
    PermissionSet,
)

TABLE_DATA_FLAGS = PermissionFlags.READ | PermissionFlags.INSERT | PermissionFlags.MODIFY | PermissionFlags.DELETE

REQUIRED_FLAGS: dict[ObjectType, PermissionFlags] = {
    ObjectType.TABLE_DATA: TABLE_DATA_FLAGS,
}
DEFAULT_REQUIRED_FLAGS = PermissionFlags.EXECUTE

DEFAULT_CHECK_RANGE = IdRange(50000, 99999)

_FREE_OBJECTS = IdRange(50000, 50099)
_BASE_ROLE = "Base license"
# Custom-object allowance that comes with every license without appearing
# in the permission report.
BASE_GRANTS = PermissionSet(
    grants=(
        PermissionGrant(
            ObjectType.TABLE_DATA,
            IdRange(50000, 50009),
            PermissionFlags.from_letters("RIMDX"),
            _BASE_ROLE,
        ),
        PermissionGrant(ObjectType.PAGE, _FREE_OBJECTS, PermissionFlags.EXECUTE, _BASE_ROLE),
        PermissionGrant(ObjectType.REPORT, _FREE_OBJECTS, PermissionFlags.EXECUTE, _BASE_ROLE),
        PermissionGrant(ObjectType.CODEUNIT, _FREE_OBJECTS, PermissionFlags.EXECUTE, _BASE_ROLE),
        PermissionGrant(ObjectType.XMLPORT, _FREE_OBJECTS, PermissionFlags.EXECUTE, _BASE_ROLE),
        PermissionGrant(ObjectType.QUERY, _FREE_OBJECTS, PermissionFlags.EXECUTE, _BASE_ROLE),
    )
)


class CoverageSummary(TypedDict):
    """Result counts for one reconciliation run."""

    total: int
    fully_licensed: int
    partially_licensed: int
    unlicensed: int


def required_flags(object_type: ObjectType) -> PermissionFlags:
    """Return the flags an object of `object_type` needs to be fully licensed."""

    return REQUIRED_FLAGS.get(object_type, DEFAULT_REQUIRED_FLAGS)


def classify(object_type: ObjectType, matched: PermissionFlags, *, has_grant: bool) -> CoverageStatus:
    """Classify unioned flags against the type's required set."""

    required = required_flags(object_type)
    if not has_grant or not matched & required:
        return CoverageStatus.UNLICENSED
    if matched.covers(required):
        return CoverageStatus.FULLY_LICENSED
    return CoverageStatus.PARTIALLY_LICENSED


def bucket_grants(permissions: Iterable[PermissionGrant]) -> dict[ObjectType, list[PermissionGrant]]:
    """Group grants by object type, keeping report order inside each bucket."""

    buckets: defaultdict[ObjectType, list[PermissionGrant]] = defaultdict(list)
    for grant in permissions:
        buckets[grant.object_type].append(grant)
    return dict(buckets)


def check_object(item: InventoryObject, grants: Iterable[PermissionGrant]) -> CoverageResult:
    """Union every grant covering `item` and classify the result.

    There is no deny permission: overlapping grants from different roles only
    ever add flags, so grant order never changes the outcome.
    """

    matched = PermissionFlags.NONE
    has_grant = False
    roles: dict[str, None] = {}

    for grant in grants:
        if not grant.applies_to(item.object_type, item.object_id):
            continue
        has_grant = True
        matched |= grant.flags
        if grant.source_role is not None:
            roles.setdefault(grant.source_role, None)

    return CoverageResult(
        object=item,
        status=classify(item.object_type, matched, has_grant=has_grant),
        matched_flags=matched,
        source_roles=tuple(roles),
    )


def reconcile(permissions: PermissionSet, inventory: ObjectInventory) -> list[CoverageResult]:
    """Return one coverage result per inventory object, in inventory order."""

    buckets = bucket_grants(permissions)
    return [check_object(item, buckets.get(item.object_type, ())) for item in inventory]


def licensable_scope(inventory: ObjectInventory, id_range: IdRange = DEFAULT_CHECK_RANGE) -> ObjectInventory:
    """Keep licensed object types whose id falls inside the checked custom range."""

    return inventory.filter(lambda item: item.object_type.is_licensed and item.object_id in id_range)


def gaps(results: Iterable[CoverageResult]) -> list[CoverageResult]:
    """Return results that are not fully licensed, order preserved."""

    return [result for result in results if result.is_gap]


def summarize(results: Iterable[CoverageResult]) -> CoverageSummary:
    """Count results per coverage status."""

    counts: defaultdict[CoverageStatus, int] = defaultdict(int)
    total = 0
    for result in results:
        counts[result.status] += 1
        total += 1

    return {
        "total": total,
        "fully_licensed": counts[CoverageStatus.FULLY_LICENSED],
        "partially_licensed": counts[CoverageStatus.PARTIALLY_LICENSED],
        "unlicensed": counts[CoverageStatus.UNLICENSED],
    }
