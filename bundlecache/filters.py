"""
Projection filters for bundle lookups.

Clients pass a comma-separated list of optional fields (``name,apps``). The
identifier, ``last_update`` and ``queued_for_update`` are always returned and
cannot be filtered.
"""
import re
from enum import Enum
from typing import FrozenSet, Optional

from bundlecache.exceptions import ValidationException


class BundleField(Enum):
    """Optional fields of a bundle projection"""

    NAME = "name"
    REMOVED = "removed"
    APPS = "apps"

    @property
    def requires_join(self) -> bool:
        """Whether including the field costs an extra table lookup"""
        return self in (BundleField.NAME, BundleField.APPS)

    def extract(self, row, app_map):
        if self is BundleField.NAME:
            return row.name
        if self is BundleField.REMOVED:
            return bool(row.removed)
        return list(app_map.get(row.bundle_id, []))


FIELD_NAMES = [field.value for field in BundleField]

FILTERS_PATTERN = re.compile(rf"^((({'|'.join(FIELD_NAMES)}),?)+)?$")

FILTERS_MESSAGE = f"Must be a comma-separated list containing the following values: {', '.join(FIELD_NAMES)}"


class FilterSpec:
    """Validated, immutable set of requested optional fields"""

    __slots__ = ("_fields",)

    def __init__(self, fields):
        self._fields: FrozenSet[BundleField] = frozenset(fields)

    @classmethod
    def all(cls) -> "FilterSpec":
        return cls(BundleField)

    @property
    def fields(self) -> FrozenSet[BundleField]:
        return self._fields

    def includes(self, field: BundleField) -> bool:
        return field in self._fields

    @property
    def joins(self) -> FrozenSet[BundleField]:
        """Requested fields that need a lookup beyond the primary table"""
        return frozenset(field for field in self._fields if field.requires_join)

    def __eq__(self, other):
        return isinstance(other, FilterSpec) and self._fields == other._fields

    def __hash__(self):
        return hash(self._fields)

    def __repr__(self):
        names = sorted(field.value for field in self._fields)
        return f"FilterSpec({','.join(names)})"


def parse_filters(value: Optional[str]) -> FilterSpec:
    """
    Parse a comma-separated filter string into a FilterSpec.

    An empty or missing value selects every field and a trailing separator is
    ignored. Unknown tokens raise ValidationException.
    """
    value = value or ""
    if not FILTERS_PATTERN.match(value):
        raise ValidationException(FILTERS_MESSAGE, field="filters")

    tokens = {token for token in value.split(",") if token}
    # The pattern alone accepts run-together names such as "nameapps"
    if not tokens.issubset(FIELD_NAMES):
        raise ValidationException(FILTERS_MESSAGE, field="filters")
    if not tokens:
        return FilterSpec.all()
    return FilterSpec(BundleField(token) for token in tokens)
