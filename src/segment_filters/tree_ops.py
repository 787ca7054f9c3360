"""Copy-on-write mutation and query primitives for filter trees.

Every id-addressed operation searches depth-first, children in order, and
acts on the first match only. Ids are expected to be unique but nothing here
enforces it; duplicates are a caller error reported by the validator.

An id that matches nothing leaves the tree unchanged, and so does an edit
that would exceed the depth, fan-out or condition limits. In both cases the
very same tree object is returned, so callers can detect a refused edit with
``new is old``.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Optional, Union

from segment_filters.config import settings
from segment_filters.contracts.tree import (
    CONDITION_OPERATORS,
    GROUP_OPERATORS,
    OPPOSITE_OPERATORS,
    Condition,
    ConditionOperator,
    ConditionValue,
    FilterTree,
    Group,
    GroupOperator,
    new_id,
)
from segment_filters.util.logging import get_logger

logger = get_logger(__name__)

MAX_TREE_DEPTH = settings.FILTER_MAX_TREE_DEPTH
MAX_TREE_CONDITIONS = settings.FILTER_MAX_TREE_CONDITIONS
MAX_CHILDREN_PER_GROUP = settings.FILTER_MAX_CHILDREN_PER_GROUP

Node = Union[Condition, Group]

UPDATABLE_CONDITION_FIELDS: frozenset[str] = frozenset(
    {"attribute", "operator", "value", "negated"}
)


# ============================================================================
# Constructors
# ============================================================================


def create_empty_tree() -> FilterTree:
    """Create a version 1 tree whose root is an empty AND group."""
    return FilterTree(version=1, root=create_empty_group())


def create_empty_group(operator: GroupOperator = "and") -> Group:
    if operator not in GROUP_OPERATORS:
        raise ValueError(f"Invalid group operator: {operator!r} (expected 'and' or 'or')")
    return Group(id=new_id(), operator=operator)


def create_condition(
    attribute: str = "",
    operator: ConditionOperator = "is",
    value: ConditionValue = "",
) -> Condition:
    if operator not in CONDITION_OPERATORS:
        raise ValueError(f"Unknown condition operator: {operator!r}")
    return Condition(id=new_id(), attribute=attribute, operator=operator, value=value)


def clear_tree(tree: FilterTree) -> FilterTree:
    """Drop every child of the root, keeping the root's id and operator."""
    if not tree.root.children:
        return tree
    return _with_root(tree, tree.root.model_copy(update={"children": ()}))


def is_group(node: Any) -> bool:
    return isinstance(node, Group)


def is_condition(node: Any) -> bool:
    return isinstance(node, Condition)


# ============================================================================
# Rebuild helpers
# ============================================================================


def _with_root(tree: FilterTree, root: Group) -> FilterTree:
    return tree.model_copy(update={"root": root})


def _replace_child(group: Group, index: int, node: Optional[Node]) -> Group:
    children = list(group.children)
    if node is None:
        del children[index]
    else:
        children[index] = node
    return group.model_copy(update={"children": tuple(children)})


def _insert_child(group: Group, node: Node, index: Optional[int] = None) -> Group:
    children = list(group.children)
    if index is None:
        children.append(node)
    else:
        children.insert(index, node)
    return group.model_copy(update={"children": tuple(children)})


def _edit_group(
    group: Group, group_id: str, edit: Callable[[Group], Group]
) -> Optional[Group]:
    """Rebuild *group* with ``edit`` applied to the first group matching *group_id*.

    Returns None when no group matches.
    """
    if group.id == group_id:
        return edit(group)
    for i, child in enumerate(group.children):
        if isinstance(child, Group):
            edited = _edit_group(child, group_id, edit)
            if edited is not None:
                return _replace_child(group, i, edited)
    return None


def _edit_child(
    group: Group,
    node_id: str,
    kind: type,
    edit: Callable[[Node], Optional[Node]],
) -> Optional[Group]:
    """Rebuild *group* with the first descendant of type *kind* matching *node_id*
    replaced by ``edit(node)``, or removed when ``edit`` returns None.

    Returns None when no descendant matches.
    """
    for i, child in enumerate(group.children):
        if isinstance(child, kind) and child.id == node_id:
            return _replace_child(group, i, edit(child))
        if isinstance(child, Group):
            edited = _edit_child(child, node_id, kind, edit)
            if edited is not None:
                return _replace_child(group, i, edited)
    return None


def _find_group(group: Group, group_id: str) -> Optional[Group]:
    if group.id == group_id:
        return group
    for child in group.children:
        if isinstance(child, Group):
            found = _find_group(child, group_id)
            if found is not None:
                return found
    return None


def _count_in(group: Group) -> int:
    count = 0
    for child in group.children:
        if isinstance(child, Group):
            count += _count_in(child)
        else:
            count += 1
    return count


def _group_height(group: Group) -> int:
    """Number of group levels in *group*'s subtree, counting *group* itself."""
    return 1 + max(
        (_group_height(c) for c in group.children if isinstance(c, Group)),
        default=0,
    )


def _walk(node: Node) -> Iterator[Node]:
    yield node
    if isinstance(node, Group):
        for child in node.children:
            yield from _walk(child)


# ============================================================================
# Mutations
# ============================================================================


def add_condition(
    tree: FilterTree,
    group_id: str,
    condition: Condition,
    *,
    max_children: int = MAX_CHILDREN_PER_GROUP,
    max_conditions: int = MAX_TREE_CONDITIONS,
) -> FilterTree:
    """Append *condition* to the group with *group_id*."""
    target = _find_group(tree.root, group_id)
    if target is None:
        logger.debug(f"add_condition: no group {group_id}")
        return tree
    if len(target.children) >= max_children:
        logger.info(f"add_condition refused: group {group_id} already has {max_children} children")
        return tree
    if not can_add_condition(tree, max_conditions=max_conditions):
        logger.info(f"add_condition refused: tree already has {max_conditions} conditions")
        return tree

    root = _edit_group(tree.root, group_id, lambda g: _insert_child(g, condition))
    return _with_root(tree, root)


def remove_condition(tree: FilterTree, condition_id: str) -> FilterTree:
    root = _edit_child(tree.root, condition_id, Condition, lambda _: None)
    if root is None:
        logger.debug(f"remove_condition: no condition {condition_id}")
        return tree
    return _with_root(tree, root)


def update_condition(
    tree: FilterTree, condition_id: str, updates: Mapping[str, Any]
) -> FilterTree:
    """Merge *updates* into the matching condition, leaving other fields as they are.

    Only ``attribute``, ``operator``, ``value`` and ``negated`` may be updated;
    anything else (including ``id``) raises ValueError.
    """
    unknown = set(updates) - UPDATABLE_CONDITION_FIELDS
    if unknown:
        raise ValueError(f"Cannot update condition fields: {sorted(unknown)}")

    def merge(node: Node) -> Node:
        return Condition.model_validate({**node.model_dump(), **updates})

    root = _edit_child(tree.root, condition_id, Condition, merge)
    if root is None:
        logger.debug(f"update_condition: no condition {condition_id}")
        return tree
    return _with_root(tree, root)


def add_group(
    tree: FilterTree,
    parent_group_id: str,
    new_group: Optional[Group] = None,
    *,
    max_depth: int = MAX_TREE_DEPTH,
    max_children: int = MAX_CHILDREN_PER_GROUP,
    max_conditions: int = MAX_TREE_CONDITIONS,
) -> FilterTree:
    """Append *new_group* (an empty AND group by default) under *parent_group_id*."""
    if new_group is None:
        new_group = create_empty_group()

    depth = get_group_depth(tree, parent_group_id)
    if depth is None:
        logger.debug(f"add_group: no group {parent_group_id}")
        return tree
    if depth + _group_height(new_group) > max_depth:
        logger.info(f"add_group refused: nesting under {parent_group_id} would exceed depth {max_depth}")
        return tree
    parent = _find_group(tree.root, parent_group_id)
    if len(parent.children) >= max_children:
        logger.info(f"add_group refused: group {parent_group_id} already has {max_children} children")
        return tree
    if count_conditions(tree) + _count_in(new_group) > max_conditions:
        logger.info(f"add_group refused: tree would exceed {max_conditions} conditions")
        return tree

    root = _edit_group(tree.root, parent_group_id, lambda g: _insert_child(g, new_group))
    return _with_root(tree, root)


def remove_group(tree: FilterTree, group_id: str) -> FilterTree:
    """Remove a group and its subtree. The root cannot be removed."""
    if group_id == tree.root.id:
        logger.debug("remove_group: refusing to remove the root group")
        return tree
    root = _edit_child(tree.root, group_id, Group, lambda _: None)
    if root is None:
        logger.debug(f"remove_group: no group {group_id}")
        return tree
    return _with_root(tree, root)


def update_group_operator(
    tree: FilterTree, group_id: str, operator: GroupOperator
) -> FilterTree:
    if operator not in GROUP_OPERATORS:
        raise ValueError(f"Invalid group operator: {operator!r} (expected 'and' or 'or')")
    root = _edit_group(
        tree.root, group_id, lambda g: g.model_copy(update={"operator": operator})
    )
    if root is None:
        logger.debug(f"update_group_operator: no group {group_id}")
        return tree
    return _with_root(tree, root)


def move_node(
    tree: FilterTree,
    node_id: str,
    target_group_id: str,
    index: Optional[int] = None,
    *,
    max_depth: int = MAX_TREE_DEPTH,
    max_children: int = MAX_CHILDREN_PER_GROUP,
) -> FilterTree:
    """Detach a node and insert it into another group at *index* (end by default).

    Moving the root, or moving a group into its own subtree, is a no-op.
    """
    node = find_node(tree, node_id)
    if node is None or node.id == tree.root.id:
        logger.debug(f"move_node: no movable node {node_id}")
        return tree
    if isinstance(node, Group) and _find_group(node, target_group_id) is not None:
        logger.debug(f"move_node: {target_group_id} lies inside {node_id}")
        return tree

    detached = _with_root(tree, _edit_child(tree.root, node_id, type(node), lambda _: None))
    target = _find_group(detached.root, target_group_id)
    if target is None:
        logger.debug(f"move_node: no group {target_group_id}")
        return tree
    if len(target.children) >= max_children:
        logger.info(f"move_node refused: group {target_group_id} already has {max_children} children")
        return tree
    if isinstance(node, Group):
        depth = get_group_depth(detached, target_group_id)
        if depth + _group_height(node) > max_depth:
            logger.info(f"move_node refused: depth would exceed {max_depth}")
            return tree

    root = _edit_group(
        detached.root, target_group_id, lambda g: _insert_child(g, node, index)
    )
    return _with_root(detached, root)


def normalize_negation(tree: FilterTree) -> FilterTree:
    """Fold every ``negated`` flag into the opposite operator.

    ``negated=True`` on ``is`` becomes ``is_not`` and so on. Conditions with
    an unrecognized operator keep their flag.
    """

    def fold(group: Group) -> Group:
        children = []
        for child in group.children:
            if isinstance(child, Group):
                children.append(fold(child))
            elif child.negated and child.operator in OPPOSITE_OPERATORS:
                children.append(
                    child.model_copy(
                        update={
                            "operator": OPPOSITE_OPERATORS[child.operator],
                            "negated": False,
                        }
                    )
                )
            else:
                children.append(child)
        return group.model_copy(update={"children": tuple(children)})

    if not any(isinstance(n, Condition) and n.negated for n in iter_nodes(tree)):
        return tree
    return _with_root(tree, fold(tree.root))


# ============================================================================
# Queries
# ============================================================================


def iter_nodes(tree: FilterTree) -> Iterator[Node]:
    """Yield every node, root first, depth-first with children in order."""
    return _walk(tree.root)


def find_node(tree: FilterTree, node_id: str) -> Optional[Node]:
    for node in iter_nodes(tree):
        if node.id == node_id:
            return node
    return None


def find_parent(tree: FilterTree, node_id: str) -> Optional[Group]:
    """Return the group directly containing *node_id* (None for the root or a miss)."""

    def search(group: Group) -> Optional[Group]:
        for child in group.children:
            if child.id == node_id:
                return group
            if isinstance(child, Group):
                found = search(child)
                if found is not None:
                    return found
        return None

    return search(tree.root)


def get_group_depth(tree: FilterTree, group_id: str) -> Optional[int]:
    """Number of group boundaries between the root and *group_id* (root is 0).

    Returns None when no group has that id.
    """

    def search(group: Group, depth: int) -> Optional[int]:
        if group.id == group_id:
            return depth
        for child in group.children:
            if isinstance(child, Group):
                found = search(child, depth + 1)
                if found is not None:
                    return found
        return None

    return search(tree.root, 0)


def count_conditions(tree: FilterTree) -> int:
    return _count_in(tree.root)


def can_add_condition(
    tree: FilterTree, *, max_conditions: int = MAX_TREE_CONDITIONS
) -> bool:
    return count_conditions(tree) < max_conditions


def can_add_group(
    tree: FilterTree, group_id: str, *, max_depth: int = MAX_TREE_DEPTH
) -> bool:
    depth = get_group_depth(tree, group_id)
    return depth is not None and depth + 1 <= max_depth


def get_used_attributes(tree: FilterTree) -> list[str]:
    """Distinct non-empty attributes in traversal order."""
    seen: list[str] = []
    for node in iter_nodes(tree):
        if isinstance(node, Condition) and node.attribute and node.attribute not in seen:
            seen.append(node.attribute)
    return seen


def has_or_logic(tree: FilterTree) -> bool:
    return any(isinstance(n, Group) and n.operator == "or" for n in iter_nodes(tree))


def has_nested_groups(tree: FilterTree) -> bool:
    return any(isinstance(c, Group) for c in tree.root.children)
