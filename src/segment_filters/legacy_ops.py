"""Legacy tuple filter format and its conversion to and from the tree model.

The dashboard's older encoding stores a condition as a bare triple and a
group as a ``filter_type``/``children`` object::

    ["is", "visit:country", ["US", "UK"]]
    {"filter_type": "or", "children": [[...], {...}]}

A top-level AND group of simple conditions can be stored flat, as a bare
list of triples. These helpers work directly on the decoded JSON (lists and
dicts) and never mutate their input. Since the format carries no tag, nodes
are classified once by ``node_kind``; everything else dispatches on it.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Literal, Optional, Union

from segment_filters.config import settings
from segment_filters.contracts.tree import (
    GROUP_OPERATORS,
    OPPOSITE_OPERATORS,
    Condition,
    ConditionValue,
    FilterTree,
    Group,
    new_id,
)
from segment_filters.exceptions import ConversionError

MAX_NESTING_DEPTH = settings.FILTER_MAX_NESTING_DEPTH
MAX_CHILDREN_PER_GROUP = settings.FILTER_MAX_CHILDREN_PER_GROUP

FilterOperation = Literal[
    "is",
    "is_not",
    "contains",
    "contains_not",
    "has_not_done",
    "matches",
    "matches_not",
    "matches_wildcard",
    "matches_wildcard_not",
]

FILTER_OPERATIONS: frozenset[str] = frozenset(
    {
        "is",
        "is_not",
        "contains",
        "contains_not",
        "has_not_done",
        "matches",
        "matches_not",
        "matches_wildcard",
        "matches_wildcard_not",
    }
)

# [operation, dimension, clauses]
FilterCondition = list
# {"filter_type": "and" | "or", "children": [FilterComposite, ...]}
FilterGroup = dict
FilterComposite = Union[FilterCondition, FilterGroup]

NodeKind = Literal["group", "condition"]


# ============================================================================
# Classification
# ============================================================================


def is_filter_group(node: Any) -> bool:
    return (
        isinstance(node, Mapping)
        and isinstance(node.get("filter_type"), str)
        and node["filter_type"] in GROUP_OPERATORS
        and isinstance(node.get("children"), (list, tuple))
    )


def is_filter_condition(node: Any) -> bool:
    return (
        isinstance(node, (list, tuple))
        and len(node) == 3
        and isinstance(node[0], str)
        and isinstance(node[1], str)
        and isinstance(node[2], (list, tuple))
        and all(isinstance(c, str) for c in node[2])
    )


def node_kind(node: Any) -> Optional[NodeKind]:
    """Classify a decoded node; None when it is neither a group nor a condition."""
    if is_filter_group(node):
        return "group"
    if is_filter_condition(node):
        return "condition"
    return None


# ============================================================================
# Flat <-> nested
# ============================================================================


def flat_to_nested(flat: Sequence[FilterCondition]) -> FilterGroup:
    """Wrap a flat list of conditions in a single AND group."""
    return {"filter_type": "and", "children": list(flat)}


def nested_to_flat(node: FilterComposite) -> list[FilterComposite]:
    """Flatten AND structure into a list of conditions.

    AND groups are flattened recursively through AND descendants. An OR
    group cannot be flattened without changing its meaning, so it is kept
    whole as a single element, whether it is *node* itself or nested inside
    an AND group. A bare condition yields a one-element list.
    """
    if node_kind(node) == "group" and node["filter_type"] == "and":
        flat: list[FilterComposite] = []
        for child in node["children"]:
            flat.extend(nested_to_flat(child))
        return flat
    return [node]


# ============================================================================
# Shape queries
# ============================================================================


def get_nesting_depth(node: FilterComposite) -> int:
    """0 for a condition; 1 + the deepest child for a group."""
    if node_kind(node) == "group":
        return 1 + max((get_nesting_depth(c) for c in node["children"]), default=0)
    return 0


def get_child_count(node: FilterComposite) -> int:
    if node_kind(node) == "group":
        return len(node["children"])
    return 1


def is_valid_nesting_depth(
    node: FilterComposite, *, max_depth: int = MAX_NESTING_DEPTH
) -> bool:
    return get_nesting_depth(node) <= max_depth


def is_valid_child_count(
    node: FilterComposite, *, max_children: int = MAX_CHILDREN_PER_GROUP
) -> bool:
    """True when no group, at any level, has more than *max_children* children."""
    if node_kind(node) != "group":
        return True
    if len(node["children"]) > max_children:
        return False
    return all(
        is_valid_child_count(c, max_children=max_children) for c in node["children"]
    )


def get_all_leaf_conditions(node: FilterComposite) -> list[FilterCondition]:
    """Every condition under *node*, depth-first in traversal order."""
    kind = node_kind(node)
    if kind == "group":
        leaves: list[FilterCondition] = []
        for child in node["children"]:
            leaves.extend(get_all_leaf_conditions(child))
        return leaves
    if kind == "condition":
        return [node]
    return []


# ============================================================================
# Group editing (index-addressed)
# ============================================================================


def create_empty_filter_group() -> FilterGroup:
    return {"filter_type": "and", "children": []}


def create_filter_condition(
    dimension: str,
    operation: FilterOperation = "is",
    clauses: Optional[Sequence[str]] = None,
) -> FilterCondition:
    if operation not in FILTER_OPERATIONS:
        raise ValueError(f"Unknown filter operation: {operation!r}")
    return [operation, dimension, list(clauses or [])]


def add_condition_to_group(group: FilterGroup, condition: FilterComposite) -> FilterGroup:
    return {**group, "children": [*group["children"], condition]}


def remove_condition_from_group(group: FilterGroup, index: int) -> FilterGroup:
    """Drop the child at *index*; an index that matches no child changes nothing."""
    return {
        **group,
        "children": [c for i, c in enumerate(group["children"]) if i != index],
    }


def update_condition_in_group(
    group: FilterGroup, index: int, condition: FilterComposite
) -> FilterGroup:
    return {
        **group,
        "children": [
            condition if i == index else c for i, c in enumerate(group["children"])
        ],
    }


def change_group_filter_type(group: FilterGroup, filter_type: str) -> FilterGroup:
    if filter_type not in GROUP_OPERATORS:
        raise ValueError(f"Invalid filter type: {filter_type!r} (expected 'and' or 'or')")
    return {**group, "filter_type": filter_type}


def wrap_in_group(children: Sequence[FilterComposite], filter_type: str) -> FilterGroup:
    if filter_type not in GROUP_OPERATORS:
        raise ValueError(f"Invalid filter type: {filter_type!r} (expected 'and' or 'or')")
    return {"filter_type": filter_type, "children": list(children)}


# ============================================================================
# Bridge to the tree model
# ============================================================================

# Tree operators with a tuple spelling. Tuple ``is`` takes any of its clauses,
# so the set operators map onto it directly.
TREE_TO_TUPLE_OPERATIONS: dict[str, str] = {
    **{op: op for op in FILTER_OPERATIONS},
    "equals": "is",
    "not_equals": "is_not",
    "is_one_of": "is",
    "is_not_one_of": "is_not",
}


def _value_to_clauses(value: ConditionValue) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    if isinstance(value, bool):
        return ["true" if value else "false"]
    return [str(value)]


def _clauses_to_value(clauses: Sequence[str]) -> ConditionValue:
    if not clauses:
        return ""
    if len(clauses) == 1:
        return clauses[0]
    return tuple(clauses)


def tree_to_composite(node: Union[FilterTree, Group, Condition]) -> FilterComposite:
    """Encode a tree (or any node of one) in the legacy tuple format.

    A ``negated`` flag is folded into the opposite operator first. Raises
    ConversionError for operators the tuple format cannot express.
    """
    if isinstance(node, FilterTree):
        node = node.root
    if isinstance(node, Group):
        if node.operator not in GROUP_OPERATORS:
            raise ConversionError(f"Invalid group operator: {node.operator!r}")
        return {
            "filter_type": node.operator,
            "children": [tree_to_composite(c) for c in node.children],
        }

    operator: Optional[str] = node.operator
    if node.negated:
        operator = OPPOSITE_OPERATORS.get(node.operator)
    operation = TREE_TO_TUPLE_OPERATIONS.get(operator) if operator else None
    if operation is None:
        spelled = f"negated {node.operator!r}" if node.negated else repr(node.operator)
        raise ConversionError(f"Operator {spelled} has no legacy tuple form")
    return [operation, node.attribute, _value_to_clauses(node.value)]


def _composite_to_node(node: Any) -> Union[Group, Condition]:
    kind = node_kind(node)
    if kind == "group":
        return Group(
            id=new_id(),
            operator=node["filter_type"],
            children=tuple(_composite_to_node(c) for c in node["children"]),
        )
    if kind == "condition":
        operation, dimension, clauses = node
        if operation not in FILTER_OPERATIONS:
            raise ConversionError(f"Unknown filter operation: {operation!r}")
        return Condition(
            id=new_id(),
            attribute=dimension,
            operator=operation,
            value=_clauses_to_value(clauses),
        )
    raise ConversionError("Value is neither a filter group nor a filter condition")


def composite_to_tree(composite: FilterComposite) -> FilterTree:
    """Decode a tuple-format node into a tree with fresh ids.

    A bare condition becomes the only child of an AND root.
    """
    node = _composite_to_node(composite)
    if isinstance(node, Condition):
        node = Group(id=new_id(), operator="and", children=(node,))
    return FilterTree(version=1, root=node)
