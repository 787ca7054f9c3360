from __future__ import annotations

import pytest

from segment_filters import legacy_ops
from segment_filters.contracts.tree import FilterTree
from segment_filters.exceptions import ConversionError, SegmentFilterError
from segment_filters_validation.stubs import cond, group, tree


US = ["is", "visit:country", ["US"]]
MOBILE = ["is", "visit:device", ["mobile"]]
PRICING = ["contains", "event:page", ["/pricing"]]


def test_classification():
    assert legacy_ops.node_kind(US) == "condition"
    assert legacy_ops.node_kind({"filter_type": "or", "children": []}) == "group"
    assert legacy_ops.node_kind({"filter_type": "xor", "children": []}) is None
    assert legacy_ops.node_kind(["is", "visit:country"]) is None
    assert legacy_ops.node_kind(["is", "visit:country", "US"]) is None
    assert legacy_ops.node_kind("is") is None


def test_nesting_depth():
    assert legacy_ops.get_nesting_depth(US) == 0
    assert legacy_ops.get_nesting_depth(legacy_ops.create_empty_filter_group()) == 1
    nested = {"filter_type": "and", "children": [US, {"filter_type": "or", "children": [MOBILE]}]}
    assert legacy_ops.get_nesting_depth(nested) == 2
    assert legacy_ops.is_valid_nesting_depth(nested)
    assert not legacy_ops.is_valid_nesting_depth({"filter_type": "and", "children": [nested]})


def test_child_count_limit():
    ten = {"filter_type": "and", "children": [US] * 10}
    eleven = {"filter_type": "and", "children": [US] * 11}
    assert legacy_ops.get_child_count(ten) == 10
    assert legacy_ops.get_child_count(US) == 1
    assert legacy_ops.is_valid_child_count(ten)
    assert not legacy_ops.is_valid_child_count(eleven)
    assert not legacy_ops.is_valid_child_count({"filter_type": "or", "children": [eleven]})


def test_flatten_round_trip():
    flat = [US, MOBILE, PRICING]
    assert legacy_ops.flat_to_nested(flat) == {"filter_type": "and", "children": flat}
    assert legacy_ops.nested_to_flat(legacy_ops.flat_to_nested(flat)) == flat


def test_flatten_keeps_or_groups_whole(legacy_filter: dict):
    or_group = legacy_filter["children"][1]
    assert legacy_ops.nested_to_flat(legacy_filter) == [US, or_group]
    assert legacy_ops.nested_to_flat(or_group) == [or_group]
    assert legacy_ops.nested_to_flat(US) == [US]


def test_flatten_is_idempotent(legacy_filter: dict):
    once = legacy_ops.nested_to_flat(legacy_filter)
    twice = legacy_ops.nested_to_flat(legacy_ops.flat_to_nested(once))
    assert once == twice


def test_leaf_conditions_are_additive():
    node = {"filter_type": "and", "children": [US, {"filter_type": "and", "children": [MOBILE, PRICING]}]}
    assert legacy_ops.get_all_leaf_conditions(node) == [US, MOBILE, PRICING]
    assert len(legacy_ops.get_all_leaf_conditions(node)) == 3


def test_group_helpers_do_not_mutate():
    g = legacy_ops.create_empty_filter_group()
    c = legacy_ops.create_filter_condition("visit:country", "is", ["US"])
    assert c == US

    added = legacy_ops.add_condition_to_group(g, c)
    assert g["children"] == []
    assert added["children"] == [US]

    updated = legacy_ops.update_condition_in_group(added, 0, MOBILE)
    assert updated["children"] == [MOBILE]
    assert added["children"] == [US]

    removed = legacy_ops.remove_condition_from_group(updated, 0)
    assert removed["children"] == []
    assert legacy_ops.remove_condition_from_group(updated, 5) == updated

    switched = legacy_ops.change_group_filter_type(updated, "or")
    assert switched["filter_type"] == "or"
    assert updated["filter_type"] == "and"


def test_group_helpers_reject_bad_types():
    with pytest.raises(ValueError):
        legacy_ops.create_filter_condition("visit:country", "equals")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        legacy_ops.change_group_filter_type(legacy_ops.create_empty_filter_group(), "not")
    with pytest.raises(ValueError):
        legacy_ops.wrap_in_group([US], "nand")


def test_wrap_in_group():
    assert legacy_ops.wrap_in_group([US, MOBILE], "or") == {"filter_type": "or", "children": [US, MOBILE]}


def test_tree_to_composite():
    t = tree(
        cond("c1", value="US"),
        group(
            "g1",
            cond("c2", attribute="visit:device", value="mobile"),
            cond("c3", attribute="event:page", operator="contains", value=""),
            operator="or",
        ),
    )
    assert legacy_ops.tree_to_composite(t) == {
        "filter_type": "and",
        "children": [
            ["is", "visit:country", ["US"]],
            {
                "filter_type": "or",
                "children": [
                    ["is", "visit:device", ["mobile"]],
                    ["contains", "event:page", []],
                ],
            },
        ],
    }


def test_numeric_operators_have_no_tuple_form(sample_tree: FilterTree):
    with pytest.raises(ConversionError):
        legacy_ops.tree_to_composite(sample_tree)


def test_tree_to_composite_maps_and_rejects_operators():
    mapped = tree(
        cond("c1", operator="is_one_of", value=("US", "UK")),
        cond("c2", operator="not_equals", value="DE"),
        cond("c3", operator="is", value="FR", negated=True),
    )
    assert legacy_ops.tree_to_composite(mapped)["children"] == [
        ["is", "visit:country", ["US", "UK"]],
        ["is_not", "visit:country", ["DE"]],
        ["is_not", "visit:country", ["FR"]],
    ]

    with pytest.raises(SegmentFilterError):
        legacy_ops.tree_to_composite(tree(cond("c1", operator="is_true", value=None)))


def test_composite_to_tree(legacy_filter: dict):
    t = legacy_ops.composite_to_tree(legacy_filter)
    assert t.root.operator == "and"
    c1, g1 = t.root.children
    assert (c1.attribute, c1.operator, c1.value) == ("visit:country", "is", "US")
    assert g1.operator == "or"
    assert g1.children[1].operator == "contains"
    assert legacy_ops.tree_to_composite(t) == legacy_filter


def test_composite_to_tree_wraps_bare_condition():
    t = legacy_ops.composite_to_tree(["is", "visit:country", ["US", "UK"]])
    assert t.root.operator == "and"
    assert t.root.children[0].value == ("US", "UK")


def test_composite_to_tree_rejects_unknown_shapes():
    with pytest.raises(ConversionError):
        legacy_ops.composite_to_tree({"filter_type": "and", "children": [["between", "x", []]]})
    with pytest.raises(ConversionError):
        legacy_ops.composite_to_tree({"children": []})


def test_unhashable_filter_type_is_not_a_group():
    assert legacy_ops.node_kind({"filter_type": [], "children": []}) is None
    assert legacy_ops.node_kind({"filter_type": {"a": 1}, "children": []}) is None
    assert legacy_ops.nested_to_flat({"filter_type": ["and"], "children": [US]}) == [
        {"filter_type": ["and"], "children": [US]}
    ]
