"""JSON wire encoding for filter trees and legacy tuple filters.

Parsing never raises: anything that is not valid JSON of the expected shape
comes back as None, so callers check for absence instead of catching.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Optional, Union

from pydantic import ValidationError

from segment_filters.contracts.tree import FilterTree
from segment_filters.legacy_ops import FilterComposite, node_kind
from segment_filters.util.logging import get_logger

logger = get_logger(__name__)

JsonInput = Union[str, bytes, bytearray]


def _loads(data: JsonInput) -> Any:
    try:
        return json.loads(data)
    except (TypeError, ValueError, RecursionError) as e:
        logger.debug(f"Rejected filter payload: {e}")
        return None


def serialize_tree(tree: FilterTree) -> str:
    """Encode a tree exactly as structured."""
    return tree.model_dump_json()


def parse_tree(data: Union[JsonInput, Mapping[str, Any]]) -> Optional[FilterTree]:
    """Decode a tree from JSON text or an already-decoded mapping.

    Returns None when the JSON is invalid, when ``version`` is missing, when
    the root is not a group, or when any node fails to decode.
    """
    raw = data if isinstance(data, Mapping) else _loads(data)
    if not isinstance(raw, Mapping):
        return None
    root = raw.get("root")
    if "version" not in raw or not isinstance(root, Mapping) or root.get("type") != "group":
        logger.debug("Rejected filter tree: missing version or root group")
        return None
    try:
        return FilterTree.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Rejected filter tree: {e.error_count()} schema errors")
        return None


def serialize_filter(filter: FilterComposite) -> str:
    """Encode a tuple-format filter."""
    return json.dumps(filter, separators=(",", ":"))


def deserialize_filter(data: JsonInput) -> Optional[FilterComposite]:
    """Decode a tuple-format filter; None unless it is a group or a condition."""
    parsed = _loads(data)
    if node_kind(parsed) is None:
        return None
    return parsed
