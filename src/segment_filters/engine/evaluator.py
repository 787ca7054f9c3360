"""Apply filter trees to visitor records held in a DataFrame.

Each condition becomes a boolean mask over the frame and groups combine the
masks of their children. A record with no value for an attribute only
matches the negative operators; a column missing from the frame counts as
missing for every row.
"""
from __future__ import annotations

import fnmatch
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pandas as pd

from segment_filters.contracts.specs import PreviewResult
from segment_filters.contracts.tree import Condition, ConditionValue, FilterTree, Group
from segment_filters.tree_ops import get_used_attributes
from segment_filters.util.logging import get_logger

logger = get_logger(__name__)

# Operators that hold for a record with no value.
MISSING_MATCHES: frozenset[str] = frozenset(
    {"is_not", "not_equals", "is_not_one_of", "has_not_done"}
)

_TRUTHY = {"true", "1", "yes"}


def _values(value: ConditionValue) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    return float(value)


def _is_number(value: Any) -> bool:
    try:
        _as_number(value)
    except (TypeError, ValueError):
        return False
    return True


def _equals_any(series: pd.Series, values: list[Any]) -> pd.Series:
    if values and pd.api.types.is_numeric_dtype(series) and all(_is_number(v) for v in values):
        return pd.to_numeric(series, errors="coerce").isin([_as_number(v) for v in values])
    return series.astype(str).isin([str(v) for v in values])


def _contains_any(series: pd.Series, values: list[Any]) -> pd.Series:
    text = series.astype(str)
    mask = pd.Series(False, index=series.index)
    for v in values:
        mask |= text.str.contains(str(v), case=False, regex=False, na=False)
    return mask


def compile_pattern(value: Any) -> re.Pattern:
    try:
        return re.compile(str(value))
    except re.error as e:
        raise ValueError(f"Invalid pattern {value!r}: {e}") from e


def _matches_any(series: pd.Series, values: list[Any]) -> pd.Series:
    text = series.astype(str)
    mask = pd.Series(False, index=series.index)
    for v in values:
        mask |= text.str.contains(compile_pattern(v).pattern, regex=True, na=False)
    return mask


def _wildcard_any(series: pd.Series, values: list[Any]) -> pd.Series:
    text = series.astype(str)
    mask = pd.Series(False, index=series.index)
    for v in values:
        mask |= text.str.match(fnmatch.translate(str(v)), na=False)
    return mask


def _compare(op: Callable[[pd.Series, float], pd.Series]) -> Callable[[pd.Series, list[Any]], pd.Series]:
    def mask(series: pd.Series, values: list[Any]) -> pd.Series:
        if len(values) != 1:
            raise ValueError(f"Numeric comparison needs exactly one value, got {len(values)}")
        numbers = pd.to_numeric(series, errors="coerce")
        return op(numbers, _as_number(values[0])).fillna(False)

    return mask


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _did_any(recorded: Any, values: list[Any]) -> bool:
    if isinstance(recorded, str) or not isinstance(recorded, Iterable):
        recorded = [recorded]
    done = {str(r) for r in recorded}
    return any(str(v) in done for v in values)


def _negate(positive: Callable[[pd.Series, list[Any]], pd.Series]) -> Callable[[pd.Series, list[Any]], pd.Series]:
    return lambda series, values: ~positive(series, values).fillna(False).astype(bool)


def _has_done(series: pd.Series, values: list[Any]) -> pd.Series:
    return series.map(lambda r: _did_any(r, values) if r is not None else False)


OPERATOR_MASKS: dict[str, Callable[[pd.Series, list[Any]], pd.Series]] = {
    "is": _equals_any,
    "is_not": _negate(_equals_any),
    "equals": _equals_any,
    "not_equals": _negate(_equals_any),
    "is_one_of": _equals_any,
    "is_not_one_of": _negate(_equals_any),
    "contains": _contains_any,
    "contains_not": _negate(_contains_any),
    "matches": _matches_any,
    "matches_not": _negate(_matches_any),
    "matches_wildcard": _wildcard_any,
    "matches_wildcard_not": _negate(_wildcard_any),
    "has_done": _has_done,
    "has_not_done": _negate(_has_done),
    "greater_than": _compare(lambda s, v: s > v),
    "less_than": _compare(lambda s, v: s < v),
    "greater_or_equal": _compare(lambda s, v: s >= v),
    "less_or_equal": _compare(lambda s, v: s <= v),
    "is_true": lambda series, values: series.map(_truthy),
    "is_false": lambda series, values: ~series.map(_truthy).fillna(False).astype(bool),
}


def condition_mask(condition: Condition, df: pd.DataFrame) -> pd.Series:
    """Rows of *df* matching a single condition."""
    evaluate = OPERATOR_MASKS.get(condition.operator)
    if evaluate is None:
        raise ValueError(f"Cannot evaluate operator: {condition.operator!r}")

    if condition.attribute in df.columns:
        series = df[condition.attribute]
    else:
        series = pd.Series([None] * len(df), index=df.index, dtype=object)

    present = series.notna()
    matched = evaluate(series, _values(condition.value)).fillna(False).astype(bool)
    mask = (matched & present) | (~present & (condition.operator in MISSING_MATCHES))
    if condition.negated:
        mask = ~mask
    return mask


def group_mask(group: Group, df: pd.DataFrame) -> pd.Series:
    """Rows of *df* matching a group; an empty group matches every row."""
    if group.operator not in ("and", "or"):
        raise ValueError(f"Cannot evaluate group operator: {group.operator!r}")

    combined = pd.Series(True, index=df.index)
    for i, child in enumerate(group.children):
        if isinstance(child, Group):
            mask = group_mask(child, df)
        else:
            mask = condition_mask(child, df)
        if i == 0:
            combined = mask
        elif group.operator == "and":
            combined = combined & mask
        else:
            combined = combined | mask
    return combined


def build_mask(tree: FilterTree, df: pd.DataFrame) -> pd.Series:
    return group_mask(tree.root, df)


def evaluate_tree(tree: FilterTree, record: Mapping[str, Any]) -> bool:
    """Whether a single visitor record matches the tree."""
    frame = pd.DataFrame([dict(record)])
    return bool(build_mask(tree, frame).iloc[0])


def preview(tree: FilterTree, df: pd.DataFrame) -> PreviewResult:
    """Count the rows of *df* the tree would select."""
    mask = build_mask(tree, df)
    matched = int(mask.sum())
    total = len(df)
    warnings = [
        f"Attribute '{a}' is not present in the data"
        for a in get_used_attributes(tree)
        if a not in df.columns
    ]
    for w in warnings:
        logger.warning(w)
    return PreviewResult(
        matched=matched,
        total=total,
        percent=round(100.0 * matched / total, 2) if total else 0.0,
        warnings=warnings,
    )
