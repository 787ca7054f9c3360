from __future__ import annotations

from typing import Optional

from segment_filters.contracts.tree import Condition, FilterTree, Group


def cond(
    node_id: str,
    attribute: str = "visit:country",
    operator: str = "is",
    value=("US",),
    negated: bool = False,
) -> Condition:
    return Condition(
        id=node_id,
        attribute=attribute,
        operator=operator,
        value=value,
        negated=negated,
    )


def group(node_id: str, *children, operator: str = "and") -> Group:
    return Group(id=node_id, operator=operator, children=tuple(children))


def tree(*children, operator: str = "and", root_id: str = "root") -> FilterTree:
    return FilterTree(version=1, root=group(root_id, *children, operator=operator))


def build_chain_tree(levels: int, leaf: Optional[Condition] = None) -> FilterTree:
    """Root plus *levels* nested groups g1 > g2 > ...; the deepest is at depth *levels*."""
    inner: Optional[Group] = None
    for depth in range(levels, 0, -1):
        children = (inner,) if inner is not None else ((leaf,) if leaf else ())
        inner = Group(id=f"g{depth}", operator="and", children=children)
    return tree(inner) if inner is not None else tree()


def build_sample_tree() -> FilterTree:
    """country is US AND (device is mobile OR sessions > 3)."""
    return tree(
        cond("c1", "visit:country", "is", "US"),
        group(
            "g1",
            cond("c2", "visit:device", "is", "mobile"),
            cond("c3", "sessions", "greater_than", 3),
            operator="or",
        ),
    )
