"""Filter tree AST for segment definitions.

A ``FilterTree`` wraps a root ``Group``. Groups combine their ordered
children with ``and``/``or``; children are ``Condition`` leaves or nested
groups. Nodes are frozen, so every edit produces a new tree.

The models are deliberately permissive about operators and values: trees
under construction (or received from elsewhere) can be held as-is and
``validate_filter_tree`` reports what is wrong with them.
"""
from __future__ import annotations

import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


GroupOperator = Literal["and", "or"]

ConditionOperator = Literal[
    # legacy dashboard operators
    "is",
    "is_not",
    "contains",
    "contains_not",
    "has_done",
    "has_not_done",
    "matches",
    "matches_not",
    "matches_wildcard",
    "matches_wildcard_not",
    # field-typed operators
    "equals",
    "not_equals",
    "greater_than",
    "less_than",
    "greater_or_equal",
    "less_or_equal",
    "is_one_of",
    "is_not_one_of",
    "is_true",
    "is_false",
]

GROUP_OPERATORS: frozenset[str] = frozenset({"and", "or"})

LEGACY_OPERATORS: frozenset[str] = frozenset(
    {
        "is",
        "is_not",
        "contains",
        "contains_not",
        "has_done",
        "has_not_done",
        "matches",
        "matches_not",
        "matches_wildcard",
        "matches_wildcard_not",
    }
)

EXTENDED_OPERATORS: frozenset[str] = frozenset(
    {
        "equals",
        "not_equals",
        "greater_than",
        "less_than",
        "greater_or_equal",
        "less_or_equal",
        "is_one_of",
        "is_not_one_of",
        "is_true",
        "is_false",
    }
)

CONDITION_OPERATORS: frozenset[str] = LEGACY_OPERATORS | EXTENDED_OPERATORS

# Arity classes
BOOLEAN_OPERATORS: frozenset[str] = frozenset({"is_true", "is_false"})
SET_OPERATORS: frozenset[str] = frozenset({"is_one_of", "is_not_one_of"})
NUMERIC_OPERATORS: frozenset[str] = frozenset(
    {"greater_than", "less_than", "greater_or_equal", "less_or_equal"}
)

# Each operator paired with the operator that matches exactly the complement.
_OPPOSITES = [
    ("is", "is_not"),
    ("contains", "contains_not"),
    ("has_done", "has_not_done"),
    ("matches", "matches_not"),
    ("matches_wildcard", "matches_wildcard_not"),
    ("equals", "not_equals"),
    ("greater_than", "less_or_equal"),
    ("less_than", "greater_or_equal"),
    ("is_one_of", "is_not_one_of"),
    ("is_true", "is_false"),
]
OPPOSITE_OPERATORS: dict[str, str] = {
    **{a: b for a, b in _OPPOSITES},
    **{b: a for a, b in _OPPOSITES},
}

ConditionValue = Union[bool, int, float, str, tuple[str, ...], None]


def new_id() -> str:
    """Generate an opaque node id."""
    return uuid.uuid4().hex


# Leaf nodes


class Condition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    type: Literal["condition"] = "condition"
    attribute: str = ""
    operator: str = "is"
    value: ConditionValue = ""
    negated: bool = False


# Composite nodes


class Group(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    type: Literal["group"] = "group"
    operator: str = "and"
    children: tuple[FilterNode, ...] = ()


FilterNode = Annotated[
    Union[Condition, Group],
    Field(discriminator="type"),
]


class FilterTree(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: Literal[1] = 1
    root: Group


Group.model_rebuild()
FilterTree.model_rebuild()
