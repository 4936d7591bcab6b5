"""Tests for AX tree conversion that don't require a live browser."""

import pytest

from devbrowser.core.types import StateNode
from devbrowser.extractors.a11y import build_tree, candidates, is_candidate
from fakes import ax_node, form_document


class TestBuildTree:
    def test_simple_button(self):
        nodes = [
            ax_node("1", "RootWebArea", "Page", internal=True, child_ids=["2"]),
            ax_node("2", "button", "Submit", parent_id="1", backend_id=7),
        ]
        root = build_tree(nodes)
        # Root is document (mapped from RootWebArea)
        assert root.role == "document"
        assert len(root.children) == 1
        btn = root.children[0]
        assert btn.role == "button"
        assert btn.name == "Submit"
        assert btn.backend_node_id == 7
        assert btn.ref == ""  # refs are assigned by the indexer, not here

    def test_empty_tree(self):
        root = build_tree([])
        assert root.role == "document"
        assert root.children == []

    def test_static_text_maps_to_text(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2"]),
            ax_node("2", "StaticText", "Hello", parent_id="1", internal=True),
        ]
        root = build_tree(nodes)
        assert root.children[0].role == "text"
        assert root.children[0].name == "Hello"

    def test_inline_text_boxes_dropped(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2"]),
            ax_node("2", "StaticText", "Hello", parent_id="1", internal=True, child_ids=["3"]),
            ax_node("3", "InlineTextBox", "Hello", parent_id="2", internal=True),
        ]
        root = build_tree(nodes)
        assert root.children[0].children == []

    def test_text_repeating_parent_name_pruned(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2"]),
            ax_node("2", "button", "Go", parent_id="1", child_ids=["3"]),
            ax_node("3", "StaticText", "Go", parent_id="2", internal=True),
        ]
        root = build_tree(nodes)
        assert root.children[0].children == []

    def test_ignored_node_children_promoted(self):
        """Ignored intermediate nodes: their children attach to the nearest ancestor."""
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2"]),
            ax_node("2", "generic", "", parent_id="1", ignored=True, child_ids=["3"]),
            ax_node("3", "ignored", "", parent_id="2", ignored=True, child_ids=["4"]),
            ax_node("4", "link", "Home", parent_id="3"),
        ]
        root = build_tree(nodes)
        assert [c.role for c in root.children] == ["link"]

    def test_ignored_root_still_yields_document(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, ignored=True, child_ids=["2"]),
            ax_node("2", "button", "Ok", parent_id="1"),
        ]
        root = build_tree(nodes)
        assert root.role == "document"
        assert root.children[0].name == "Ok"

    def test_empty_structural_wrappers_pruned(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2", "3"]),
            ax_node("2", "generic", "", parent_id="1"),
            ax_node("3", "none", "", parent_id="1"),
        ]
        root = build_tree(nodes)
        assert root.children == []

    def test_children_keep_document_order(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["4", "2", "3"]),
            ax_node("2", "button", "B", parent_id="1"),
            ax_node("3", "button", "C", parent_id="1"),
            ax_node("4", "button", "A", parent_id="1"),
        ]
        root = build_tree(nodes)
        assert [c.name for c in root.children] == ["A", "B", "C"]

    def test_missing_child_id_skipped(self):
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2", "99"]),
            ax_node("2", "button", "Ok", parent_id="1"),
        ]
        root = build_tree(nodes)
        assert len(root.children) == 1


class TestProperties:
    def _single(self, **kwargs) -> StateNode:
        nodes = [
            ax_node("1", "RootWebArea", "", internal=True, child_ids=["2"]),
            ax_node("2", parent_id="1", **kwargs),
        ]
        return build_tree(nodes).children[0]

    def test_checked_true(self):
        node = self._single(role="checkbox", name="Agree", props={"checked": "true"})
        assert node.checked is True

    def test_checked_false(self):
        node = self._single(role="checkbox", name="Agree", props={"checked": "false"})
        assert node.checked is False

    def test_checked_mixed(self):
        node = self._single(role="checkbox", name="All", props={"checked": "mixed"})
        assert node.checked == "mixed"

    def test_disabled_and_expanded(self):
        node = self._single(
            role="button", name="Menu", props={"disabled": True, "expanded": True}
        )
        assert node.disabled
        assert node.expanded is True

    def test_heading_level(self):
        node = self._single(role="heading", name="Title", props={"level": 2})
        assert node.level == 2

    def test_link_url(self):
        node = self._single(role="link", name="Docs", props={"url": "https://example.com/docs"})
        assert node.url == "https://example.com/docs"

    def test_value(self):
        node = self._single(role="textbox", name="Query", value="laptops")
        assert node.value == "laptops"

    def test_flags_default_off(self):
        node = self._single(role="button", name="Plain")
        assert node.checked is None
        assert node.expanded is None
        assert not node.disabled
        assert node.level is None


class TestCandidates:
    def test_interactive_roles_with_dom_node(self):
        assert is_candidate(StateNode(role="button", name="Go", backend_node_id=3))
        assert is_candidate(StateNode(role="textbox", name="", backend_node_id=4))

    def test_no_dom_node_no_candidate(self):
        assert not is_candidate(StateNode(role="button", name="Go"))

    def test_structural_and_static_roles_excluded(self):
        assert not is_candidate(StateNode(role="heading", name="Title", backend_node_id=1))
        assert not is_candidate(
            StateNode(role="document", name="", backend_node_id=1, focusable=True)
        )

    def test_focusable_semantic_role_included(self):
        assert is_candidate(StateNode(role="row", name="Item", backend_node_id=9, focusable=True))

    def test_form_document_candidates_in_order(self):
        nodes, _ = form_document()
        names = [n.name for n in candidates(build_tree(nodes))]
        assert names == ["Search", "Go", "Remember me", "Docs", "Secret", "Submit"]
