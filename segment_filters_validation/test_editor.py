from __future__ import annotations

from segment_filters.contracts.tree import FilterTree
from segment_filters.orchestrator.editor import FilterEditor, format_filter
from segment_filters.serializer import parse_tree, serialize_tree
from segment_filters_validation.stubs import cond, group, tree


def test_edit_undo_redo(editor: FilterEditor):
    empty = editor.tree
    cid = editor.add_condition()
    assert cid is not None
    assert editor.is_dirty
    assert [c.id for c in editor.tree.root.children] == [cid]

    assert editor.update_condition(cid, attribute="visit:country", value="US")
    edited = editor.tree

    assert editor.undo()
    assert editor.tree.root.children[0].attribute == ""
    assert editor.undo()
    assert editor.tree is empty
    assert not editor.undo()

    assert editor.redo()
    assert editor.redo()
    assert editor.tree is edited
    assert not editor.can_redo


def test_new_edit_clears_redo(editor: FilterEditor):
    editor.add_condition()
    editor.undo()
    assert editor.can_redo
    editor.add_group(operator="or")
    assert not editor.can_redo


def test_refused_edit_keeps_history(editor: FilterEditor):
    before = editor.tree
    assert not editor.remove_condition("missing")
    assert editor.tree is before
    assert not editor.can_undo
    assert not editor.is_dirty
    assert editor.log.event_types() == ["unchanged"]
    assert editor.log.events[0].data["action"] == "remove_condition"


def test_nested_editing(editor: FilterEditor):
    gid = editor.add_group(operator="or")
    c1 = editor.add_condition(gid)
    c2 = editor.add_condition(gid)
    assert [c.id for c in editor.tree.root.children[0].children] == [c1, c2]

    assert editor.set_group_operator(gid, "and")
    assert editor.move(c2, editor.root_id)
    assert [n.id for n in editor.tree.root.children] == [gid, c2]
    assert editor.remove_group(gid)
    assert editor.clear()
    assert editor.tree.root.children == ()


def test_history_limit():
    ed = FilterEditor(history_limit=2)
    for _ in range(3):
        ed.add_condition()
    assert ed.undo()
    assert ed.undo()
    assert not ed.undo()
    assert len(ed.tree.root.children) == 1


def test_load_and_save(editor: FilterEditor, sample_tree: FilterTree):
    assert not editor.load("not json")
    assert editor.log.event_types() == ["load_rejected"]

    editor.add_condition()
    assert editor.load(serialize_tree(sample_tree))
    assert editor.tree == sample_tree
    assert not editor.is_dirty
    assert not editor.can_undo
    assert parse_tree(editor.to_json()) == sample_tree

    editor.mark_saved()
    assert editor.last_saved is not None


def test_summary(editor: FilterEditor, sample_tree: FilterTree):
    editor.load(serialize_tree(sample_tree))
    assert editor.summary() == "Country (visit:country) is US AND (visit:device is mobile OR sessions > 3)"


def test_format_filter_variants():
    assert format_filter(tree()) == ""
    assert format_filter(tree(group("g1"), cond("c1", value="US"))) == "visit:country is US"
    assert (
        format_filter(tree(cond("c1", operator="is_one_of", value=("US", "UK")), operator="or"))
        == "visit:country is one of [US, UK]"
    )
    assert (
        format_filter(tree(cond("c1", attribute="is_subscriber", operator="is_true", value=None)))
        == "is_subscriber is true"
    )
    assert format_filter(cond("c1", attribute="", value="", negated=True)) == "Attribute not is value"


def test_build_segment_refuses_invalid_tree(editor: FilterEditor):
    result = editor.build_segment("Empty")
    assert not result.ok
    assert [e.message for e in result.errors] == ["Group must have at least one condition or subgroup"]

    nameless = editor.build_segment("  ")
    assert not nameless.ok
    assert nameless.errors[0].code == "missing_name"


def test_build_segment(editor: FilterEditor, sample_tree: FilterTree):
    editor.load(sample_tree.model_dump(mode="json"))
    editor.update_condition("c1", value="UK")
    assert editor.is_dirty

    result = editor.build_segment(" UK visitors ", segment_type="site")
    assert result.ok
    segment = result.data
    assert segment.name == "UK visitors"
    assert segment.segment_type == "site"
    assert segment.filter_tree == editor.tree
    assert segment.labels == {"visit:country": "Country"}
    assert segment.saved_at is not None
    assert not editor.is_dirty
    assert editor.log.event_types()[-1] == "saved"


def test_build_segment_warns_about_unlabeled_attributes(editor: FilterEditor, sample_tree: FilterTree):
    editor.load(sample_tree.model_dump(mode="json"))
    result = editor.build_segment("Mobile or engaged")
    assert result.ok
    assert [w.code for w in result.warnings] == ["unlabeled_attribute", "unlabeled_attribute"]
    assert [w.context["attribute"] for w in result.warnings] == ["visit:device", "sessions"]

    editor.labels.update({"visit:device": "Device", "sessions": "Sessions"})
    assert editor.build_segment("Mobile or engaged").warnings == []


def test_edit_log_to_dict(editor: FilterEditor):
    cid = editor.add_condition()
    editor.remove_condition("missing")
    logged = editor.log.to_dict()
    assert logged["session_id"] == editor.log.session_id
    assert [e["type"] for e in logged["events"]] == ["add_condition", "unchanged"]
    assert logged["events"][0]["data"]["node_id"] == cid
    assert logged["events"][1]["data"]["action"] == "remove_condition"
