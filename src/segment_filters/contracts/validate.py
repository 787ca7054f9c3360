from __future__ import annotations
"""Validation for both filter wire formats.

Validation never raises: malformed input is reported, not thrown. Every
problem in the tree is collected in one pass so a form can show them all at
once, in the same order as the children are laid out.
"""

import re
from collections.abc import Mapping
from typing import Any, Literal, Optional, Union

from pydantic import ValidationError

from segment_filters.contracts.outcome import Issue, ValidationResult, err
from segment_filters.contracts.tree import (
    BOOLEAN_OPERATORS,
    CONDITION_OPERATORS,
    GROUP_OPERATORS,
    NUMERIC_OPERATORS,
    OPPOSITE_OPERATORS,
    SET_OPERATORS,
    Condition,
    ConditionValue,
    FilterTree,
    Group,
)
from segment_filters.legacy_ops import (
    FILTER_OPERATIONS,
    MAX_NESTING_DEPTH,
    get_nesting_depth,
    node_kind,
)
from segment_filters.tree_ops import (
    MAX_CHILDREN_PER_GROUP,
    MAX_TREE_CONDITIONS,
    MAX_TREE_DEPTH,
    count_conditions,
)


# ============================================================================
# Operator/Field Type Compatibility
# ============================================================================

OperatorType = Literal["string", "number", "boolean", "set"]

# Values of these operators are regular expressions
PATTERN_OPERATORS: frozenset[str] = frozenset({"matches", "matches_not"})

# Which operators make sense for which attribute types
OPERATOR_TYPE_COMPATIBILITY: dict[str, set[str]] = {
    "string": {
        "is",
        "is_not",
        "contains",
        "contains_not",
        "matches",
        "matches_not",
        "matches_wildcard",
        "matches_wildcard_not",
        "equals",
        "not_equals",
        "is_one_of",
        "is_not_one_of",
    },
    "number": {
        "equals",
        "not_equals",
        "greater_than",
        "less_than",
        "greater_or_equal",
        "less_or_equal",
        "is_one_of",
        "is_not_one_of",
    },
    "boolean": {
        "is_true",
        "is_false",
    },
    "set": {
        "is",
        "is_not",
        "equals",
        "not_equals",
        "is_one_of",
        "is_not_one_of",
    },
    "event": {
        "has_done",
        "has_not_done",
    },
}


def check_operator_compatibility(field_type: str, operator: str) -> Optional[Issue]:
    """Check if an operator can be used on an attribute of the given type."""
    compatible = OPERATOR_TYPE_COMPATIBILITY.get(field_type)
    if compatible is None:
        return err(
            "unknown_field_type",
            f"Unknown field type: {field_type}",
            field_type=field_type,
        )
    if operator not in compatible:
        return err(
            "operator_incompatible",
            f"Operator '{operator}' is not compatible with field type '{field_type}'",
            operator=operator,
            field_type=field_type,
            compatible_operators=sorted(compatible),
        )
    return None


def get_operator_type(operator: str) -> OperatorType:
    """Kind of value input an operator expects."""
    if operator in NUMERIC_OPERATORS:
        return "number"
    if operator in BOOLEAN_OPERATORS:
        return "boolean"
    if operator in SET_OPERATORS:
        return "set"
    return "string"


def _is_blank(value: ConditionValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _is_pattern(value: ConditionValue) -> bool:
    patterns = value if isinstance(value, (list, tuple)) else (value,)
    for p in patterns:
        try:
            re.compile(str(p))
        except re.error:
            return False
    return True


def _is_numeric(value: ConditionValue) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def is_condition_complete(condition: Condition) -> bool:
    """Whether a condition has everything needed to be applied."""
    return bool(
        condition.id
        and condition.attribute
        and condition.operator
        and (condition.operator in BOOLEAN_OPERATORS or not _is_blank(condition.value))
    )


# ============================================================================
# Legacy tuple format
# ============================================================================


def is_valid_filter(node: Any) -> bool:
    """Whether *node* is a usable tuple-format filter.

    A group needs an ``and``/``or`` type and at least one child, all valid;
    a condition needs a known operation, a string dimension and a list of
    clauses. Anything else is invalid.
    """
    kind = node_kind(node)
    if kind == "group":
        return len(node["children"]) > 0 and all(
            is_valid_filter(c) for c in node["children"]
        )
    if kind == "condition":
        return node[0] in FILTER_OPERATIONS
    return False


def validate_filter(
    node: Any,
    *,
    max_depth: int = MAX_NESTING_DEPTH,
    max_children: int = MAX_CHILDREN_PER_GROUP,
) -> ValidationResult:
    """Explain why a tuple-format filter is not usable."""
    issues: list[Issue] = []

    def visit(n: Any, path: str) -> None:
        kind = node_kind(n)
        if kind is None:
            issues.append(
                err("invalid_node", f"Filter node at {path} is neither a group nor a condition", path=path)
            )
            return
        if kind == "condition":
            if n[0] not in FILTER_OPERATIONS:
                issues.append(
                    err(
                        "unknown_operation",
                        f"Condition at {path} has unrecognized operation '{n[0]}'",
                        path=path,
                        operation=n[0],
                    )
                )
            return
        children = n["children"]
        if not children:
            issues.append(err("empty_group", f"Group at {path} has no children", path=path))
        if len(children) > max_children:
            issues.append(
                err(
                    "max_children",
                    f"Group at {path} has {len(children)} children, maximum is {max_children}",
                    path=path,
                )
            )
        for i, child in enumerate(children):
            visit(child, f"{path}.children.{i}")

    visit(node, "root")
    if node_kind(node) is not None:
        depth = get_nesting_depth(node)
        if depth > max_depth:
            issues.append(
                err("max_depth", f"Filter is nested {depth} levels deep, maximum is {max_depth}", depth=depth)
            )
    return ValidationResult.from_issues(issues)


# ============================================================================
# Tree format
# ============================================================================


def _validate_condition(
    condition: Condition,
    issues: list[Issue],
    field_types: Optional[Mapping[str, str]],
) -> None:
    node_id = condition.id
    if not condition.id:
        issues.append(err("missing_id", "Condition is missing ID"))
    if not condition.attribute:
        issues.append(err("missing_field", "Condition is missing field", node_id=node_id))
    if not condition.operator:
        issues.append(err("missing_operator", "Condition is missing operator", node_id=node_id))
    elif condition.operator not in CONDITION_OPERATORS:
        issues.append(
            err(
                "unknown_operator",
                f"Condition has unrecognized operator '{condition.operator}'",
                node_id=node_id,
                operator=condition.operator,
            )
        )

    operator = condition.operator
    if operator not in BOOLEAN_OPERATORS:
        if _is_blank(condition.value):
            issues.append(err("missing_value", "Condition is missing value", node_id=node_id))
        elif operator in SET_OPERATORS and not isinstance(condition.value, tuple):
            issues.append(
                err("value_not_list", f"Condition value for '{operator}' must be a list", node_id=node_id)
            )
        elif operator in NUMERIC_OPERATORS and not _is_numeric(condition.value):
            issues.append(
                err("value_not_number", f"Condition value for '{operator}' must be a number", node_id=node_id)
            )
        elif operator in PATTERN_OPERATORS and not _is_pattern(condition.value):
            issues.append(
                err("invalid_pattern", f"Condition value for '{operator}' is not a valid pattern", node_id=node_id)
            )

    if condition.negated:
        opposite = OPPOSITE_OPERATORS.get(operator)
        hint = f"; use '{opposite}' instead" if opposite else ""
        issues.append(
            err("negated_flag", f"Condition uses the negated flag{hint}", node_id=node_id)
        )

    if field_types is not None and condition.attribute in field_types and operator in CONDITION_OPERATORS:
        issue = check_operator_compatibility(field_types[condition.attribute], operator)
        if issue is not None:
            issue.context["node_id"] = node_id
            issues.append(issue)


def _validate_group(
    group: Group,
    depth: int,
    issues: list[Issue],
    seen: set[str],
    limits: dict[str, int],
    field_types: Optional[Mapping[str, str]],
) -> None:
    node_id = group.id
    if not group.id:
        issues.append(err("missing_id", "Group is missing ID"))
    if group.operator not in GROUP_OPERATORS:
        issues.append(
            err("invalid_connector", "Group has invalid connector", node_id=node_id, operator=group.operator)
        )
    if not group.children:
        issues.append(
            err("empty_group", "Group must have at least one condition or subgroup", node_id=node_id)
        )
    if len(group.children) > limits["max_children"]:
        issues.append(
            err(
                "max_children",
                f"Group has {len(group.children)} children, maximum is {limits['max_children']}",
                node_id=node_id,
            )
        )
    if depth > limits["max_depth"]:
        issues.append(
            err(
                "max_depth",
                f"Group is nested {depth} levels deep, maximum is {limits['max_depth']}",
                node_id=node_id,
            )
        )

    for child in group.children:
        if child.id:
            if child.id in seen:
                issues.append(err("duplicate_id", f"Duplicate node id: {child.id}", node_id=child.id))
            seen.add(child.id)
        if isinstance(child, Group):
            _validate_group(child, depth + 1, issues, seen, limits, field_types)
        else:
            _validate_condition(child, issues, field_types)


def validate_filter_tree(
    tree: Union[FilterTree, Mapping[str, Any], None],
    *,
    field_types: Optional[Mapping[str, str]] = None,
    max_depth: int = MAX_TREE_DEPTH,
    max_children: int = MAX_CHILDREN_PER_GROUP,
    max_conditions: int = MAX_TREE_CONDITIONS,
) -> ValidationResult:
    """Collect every problem in a filter tree.

    Args:
        tree: A FilterTree, its decoded JSON, or None
        field_types: Optional attribute -> field type map ("string", "number",
            "boolean", "set", "event") used to check operator compatibility

    Returns:
        ValidationResult; ``errors`` lists the messages in traversal order
    """
    if isinstance(tree, Mapping):
        if tree.get("root") is None:
            tree = None
        else:
            try:
                tree = FilterTree.model_validate(tree)
            except ValidationError as e:
                return ValidationResult.from_issues(
                    [err("malformed_tree", f"Filter tree is malformed ({e.error_count()} schema errors)")]
                )

    if tree is None:
        return ValidationResult.from_issues(
            [err("missing_root", "Filter tree is missing root group")]
        )

    issues: list[Issue] = []
    limits = {"max_depth": max_depth, "max_children": max_children}
    seen: set[str] = {tree.root.id} if tree.root.id else set()
    _validate_group(tree.root, 0, issues, seen, limits, field_types)

    total = count_conditions(tree)
    if total > max_conditions:
        issues.append(
            err("max_conditions", f"Filter has {total} conditions, maximum is {max_conditions}")
        )
    return ValidationResult.from_issues(issues)
