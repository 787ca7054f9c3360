from __future__ import annotations

import json

from segment_filters.contracts.tree import FilterTree
from segment_filters.serializer import (
    deserialize_filter,
    parse_tree,
    serialize_filter,
    serialize_tree,
)
from segment_filters_validation.stubs import cond, tree


def test_tree_round_trip(sample_tree: FilterTree):
    assert parse_tree(serialize_tree(sample_tree)) == sample_tree


def test_round_trip_keeps_value_types():
    t = tree(
        cond("c1", operator="is_one_of", value=("US", "UK")),
        cond("c2", attribute="sessions", operator="greater_than", value=3),
        cond("c3", attribute="is_subscriber", operator="is_true", value=None),
        cond("c4", operator="is", value="DE", negated=True),
    )
    parsed = parse_tree(serialize_tree(t))
    assert parsed == t
    assert parsed.root.children[0].value == ("US", "UK")
    assert parsed.root.children[1].value == 3


def test_serialized_tree_shape(sample_tree: FilterTree):
    raw = json.loads(serialize_tree(sample_tree))
    assert raw["version"] == 1
    assert raw["root"]["type"] == "group"
    assert raw["root"]["children"][0] == {
        "id": "c1",
        "type": "condition",
        "attribute": "visit:country",
        "operator": "is",
        "value": "US",
        "negated": False,
    }


def test_parse_tree_rejects_bad_input():
    assert parse_tree("not json") is None
    assert parse_tree("") is None
    assert parse_tree("[1, 2]") is None
    assert parse_tree('{"root": {"id": "r", "type": "group", "operator": "and", "children": []}}') is None
    assert parse_tree('{"version": 1, "root": {"id": "c", "type": "condition"}}') is None
    assert parse_tree('{"version": 2, "root": {"id": "r", "type": "group", "children": []}}') is None
    assert parse_tree(
        '{"version": 1, "root": {"id": "r", "type": "group", "children": [{"id": "x", "type": "blob"}]}}'
    ) is None


def test_parse_tree_accepts_decoded_mapping(sample_tree: FilterTree):
    assert parse_tree(json.loads(serialize_tree(sample_tree))) == sample_tree


def test_legacy_round_trip(legacy_filter: dict):
    text = serialize_filter(legacy_filter)
    assert ", " not in text
    assert deserialize_filter(text) == legacy_filter


def test_legacy_flat_condition():
    assert deserialize_filter('["is", "visit:country", ["US"]]') == ["is", "visit:country", ["US"]]


def test_deserialize_filter_rejects_bad_input():
    assert deserialize_filter("not json") is None
    assert deserialize_filter('{"foo": 1}') is None
    assert deserialize_filter('["is", "visit:country"]') is None
    assert deserialize_filter("42") is None


def test_deeply_nested_json_is_rejected():
    assert parse_tree("[" * 100000) is None
    assert deserialize_filter("[" * 100000) is None


def test_unhashable_filter_type_is_rejected():
    assert deserialize_filter('{"filter_type": [], "children": []}') is None
    assert deserialize_filter('{"filter_type": {"a": 1}, "children": []}') is None
