"""Segment filter trees: model, editing primitives, legacy format and validation."""

from segment_filters.contracts.tree import Condition, FilterTree, Group
from segment_filters.contracts.validate import is_valid_filter, validate_filter_tree
from segment_filters.serializer import (
    deserialize_filter,
    parse_tree,
    serialize_filter,
    serialize_tree,
)

__version__ = "0.1.0"

__all__ = [
    "Condition",
    "FilterTree",
    "Group",
    "deserialize_filter",
    "is_valid_filter",
    "parse_tree",
    "serialize_filter",
    "serialize_tree",
    "validate_filter_tree",
]
