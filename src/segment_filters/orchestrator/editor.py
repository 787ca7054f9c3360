"""Filter editing session (current snapshot, undo/redo, validation)."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from segment_filters import tree_ops
from segment_filters.contracts.outcome import Outcome, ValidationResult, err, warn
from segment_filters.contracts.specs import SegmentSpec
from segment_filters.contracts.trace import EditLog
from segment_filters.contracts.tree import Condition, FilterTree, Group, GroupOperator
from segment_filters.contracts.validate import validate_filter_tree
from segment_filters.serializer import parse_tree, serialize_tree
from segment_filters.util.logging import get_logger

logger = get_logger(__name__)

OPERATOR_LABELS: dict[str, str] = {
    "is": "is",
    "is_not": "is not",
    "contains": "contains",
    "contains_not": "does not contain",
    "has_done": "has done",
    "has_not_done": "has not done",
    "matches": "matches",
    "matches_not": "does not match",
    "matches_wildcard": "matches",
    "matches_wildcard_not": "does not match",
    "equals": "=",
    "not_equals": "!=",
    "greater_than": ">",
    "less_than": "<",
    "greater_or_equal": ">=",
    "less_or_equal": "<=",
    "is_one_of": "is one of",
    "is_not_one_of": "is not one of",
    "is_true": "is true",
    "is_false": "is false",
}


def _attr_label(attribute: str, labels: Mapping[str, str]) -> str:
    if not attribute:
        return "Attribute"
    label = labels.get(attribute)
    if label is None:
        return attribute
    return f"{label} ({attribute})"


def _format_condition(condition: Condition, labels: Mapping[str, str]) -> str:
    attr = _attr_label(condition.attribute, labels)
    op = OPERATOR_LABELS.get(condition.operator, condition.operator)
    if condition.negated:
        op = f"not {op}"
    if condition.operator in ("is_true", "is_false"):
        return f"{attr} {op}"
    value = condition.value
    if isinstance(value, tuple):
        shown = "[" + ", ".join(value) + "]"
    elif value is None or value == "":
        shown = "value"
    else:
        shown = str(value)
    return f"{attr} {op} {shown}"


def format_filter(
    node: Union[FilterTree, Group, Condition],
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """Render a tree as a one-line formula, e.g. ``a is x AND (b > 3 OR c is true)``.

    Nested groups are parenthesized; empty groups render as nothing.
    """
    labels = labels or {}
    if isinstance(node, FilterTree):
        node = node.root
    if isinstance(node, Condition):
        return _format_condition(node, labels)

    parts: list[str] = []
    for child in node.children:
        if isinstance(child, Group):
            inner = format_filter(child, labels)
            if inner:
                parts.append(f"({inner})")
        else:
            parts.append(_format_condition(child, labels))
    return f" {node.operator.upper()} ".join(parts)


class FilterEditor:
    """Holds the tree being edited along with its history.

    Every edit goes through the pure functions in ``tree_ops``; the editor
    only decides which snapshot is current. Edits that change nothing
    (unknown id, limit reached) are logged and leave history untouched.
    """

    def __init__(
        self,
        tree: Optional[FilterTree] = None,
        labels: Optional[Mapping[str, str]] = None,
        history_limit: int = 50,
    ) -> None:
        self.tree = tree if tree is not None else tree_ops.create_empty_tree()
        self.labels: dict[str, str] = dict(labels or {})
        self.history_limit = history_limit

        self.is_dirty = False
        self.last_saved: Optional[datetime] = None
        self.log = EditLog(session_id=uuid.uuid4().hex)

        self._undo: list[FilterTree] = []
        self._redo: list[FilterTree] = []

    # -- history --------------------------------------------------------

    def _apply(self, action: str, new_tree: FilterTree, **data: Any) -> bool:
        if new_tree is self.tree:
            self.log.add_event("unchanged", action=action, **data)
            logger.debug(f"{action} left the tree unchanged: {data}")
            return False
        self._undo.append(self.tree)
        if len(self._undo) > self.history_limit:
            self._undo.pop(0)
        self._redo.clear()
        self.tree = new_tree
        self.is_dirty = True
        self.log.add_event(action, **data)
        return True

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        if not self._undo:
            return False
        self._redo.append(self.tree)
        self.tree = self._undo.pop()
        self.is_dirty = True
        self.log.add_event("undo")
        return True

    def redo(self) -> bool:
        if not self._redo:
            return False
        self._undo.append(self.tree)
        self.tree = self._redo.pop()
        self.is_dirty = True
        self.log.add_event("redo")
        return True

    # -- edits ----------------------------------------------------------

    @property
    def root_id(self) -> str:
        return self.tree.root.id

    def add_condition(
        self,
        group_id: Optional[str] = None,
        condition: Optional[Condition] = None,
    ) -> Optional[str]:
        """Add a condition (a blank one by default); returns its id, or None if refused."""
        condition = condition or tree_ops.create_condition()
        group_id = group_id or self.root_id
        new_tree = tree_ops.add_condition(self.tree, group_id, condition)
        if self._apply("add_condition", new_tree, group_id=group_id, node_id=condition.id):
            return condition.id
        return None

    def add_group(
        self,
        parent_group_id: Optional[str] = None,
        operator: GroupOperator = "and",
    ) -> Optional[str]:
        group = tree_ops.create_empty_group(operator)
        parent_group_id = parent_group_id or self.root_id
        new_tree = tree_ops.add_group(self.tree, parent_group_id, group)
        if self._apply("add_group", new_tree, group_id=parent_group_id, node_id=group.id):
            return group.id
        return None

    def remove_condition(self, condition_id: str) -> bool:
        new_tree = tree_ops.remove_condition(self.tree, condition_id)
        return self._apply("remove_condition", new_tree, node_id=condition_id)

    def update_condition(self, condition_id: str, **updates: Any) -> bool:
        new_tree = tree_ops.update_condition(self.tree, condition_id, updates)
        return self._apply("update_condition", new_tree, node_id=condition_id, fields=sorted(updates))

    def remove_group(self, group_id: str) -> bool:
        new_tree = tree_ops.remove_group(self.tree, group_id)
        return self._apply("remove_group", new_tree, node_id=group_id)

    def set_group_operator(self, group_id: str, operator: GroupOperator) -> bool:
        new_tree = tree_ops.update_group_operator(self.tree, group_id, operator)
        return self._apply("update_group_operator", new_tree, node_id=group_id, operator=operator)

    def move(self, node_id: str, target_group_id: str, index: Optional[int] = None) -> bool:
        new_tree = tree_ops.move_node(self.tree, node_id, target_group_id, index)
        return self._apply("move_node", new_tree, node_id=node_id, group_id=target_group_id)

    def clear(self) -> bool:
        return self._apply("clear", tree_ops.clear_tree(self.tree))

    # -- persistence ----------------------------------------------------

    def load(self, data: Union[str, bytes, Mapping[str, Any]]) -> bool:
        """Replace the session's tree with a persisted one, dropping history."""
        tree = parse_tree(data)
        if tree is None:
            self.log.add_event("load_rejected")
            logger.info("Refusing to load an unparseable filter tree")
            return False
        self.tree = tree
        self._undo.clear()
        self._redo.clear()
        self.is_dirty = False
        self.log.add_event("load", node_id=tree.root.id)
        return True

    def to_json(self) -> str:
        return serialize_tree(self.tree)

    def mark_saved(self) -> None:
        self.is_dirty = False
        self.last_saved = datetime.now(timezone.utc)
        self.log.add_event("saved")

    # -- inspection -----------------------------------------------------

    def validate(self, **kwargs: Any) -> ValidationResult:
        return validate_filter_tree(self.tree, **kwargs)

    def summary(self) -> str:
        return format_filter(self.tree, self.labels)

    def build_segment(
        self,
        name: str,
        segment_type: Literal["personal", "site"] = "personal",
    ) -> Outcome[SegmentSpec]:
        """Package the current tree as a segment, refusing invalid trees."""
        if not name.strip():
            return Outcome.failure(errors=[err("missing_name", "Segment name is required")])

        result = self.validate()
        if not result.is_valid:
            return Outcome.failure(errors=result.issues)

        used = tree_ops.get_used_attributes(self.tree)
        warnings = [
            warn("unlabeled_attribute", f"Attribute '{a}' has no display label", attribute=a)
            for a in used
            if a not in self.labels
        ]
        segment = SegmentSpec(
            segment_id=uuid.uuid4().hex,
            name=name.strip(),
            segment_type=segment_type,
            filter_tree=self.tree,
            labels={a: self.labels[a] for a in used if a in self.labels},
            saved_at=datetime.now(timezone.utc),
        )
        self.mark_saved()
        logger.debug(f"Built segment {segment.segment_id}: {self.log.to_dict()}")
        return Outcome.success(data=segment, warnings=warnings)
