"""Tests for flat-list to tree assembly and range validation (pageindex/tree_assembly.py)."""

from pageindex.models import APPEAR_NO, APPEAR_YES, Entry, TreeNode
from pageindex.tree_assembly import (
    add_preface_if_needed,
    compute_end_indices,
    finalize_ranges,
    keep_monotonic,
    parent_structure,
    post_processing,
    validate_tree,
)


def _e(title, structure, page, appear=APPEAR_YES):
    return Entry(title=title, structure=structure, physical_index=page, appear_start=appear)


def _shape(nodes):
    return [(n.title, n.start_index, n.end_index, _shape(n.children)) for n in nodes]


class TestEndIndices:
    def test_next_starts_at_top_of_page(self):
        spans = compute_end_indices([_e("A", "1", 1), _e("B", "2", 5)], 10)
        assert [end for _, end in spans] == [4, 10]

    def test_next_starts_mid_page_shares_it(self):
        spans = compute_end_indices([_e("A", "1", 1), _e("B", "2", 5, APPEAR_NO)], 10)
        assert [end for _, end in spans] == [5, 10]

    def test_last_entry_ends_on_range_end(self):
        spans = compute_end_indices([_e("A", "1", 3)], 7)
        assert spans[0][1] == 7


class TestParentStructure:
    def test_codes(self):
        assert parent_structure("1.2.3") == "1.2"
        assert parent_structure("1") is None
        assert parent_structure(None) is None
        assert parent_structure("") is None


class TestPostProcessing:
    def test_nesting_by_structure_code(self):
        entries = [_e("One", "1", 1), _e("One.A", "1.1", 2), _e("One.B", "1.2", 4), _e("Two", "2", 7)]
        tree = post_processing(entries, 10)
        assert tree[0].end_index == 1
        finalize_ranges(tree, 10)
        assert _shape(tree) == [
            ("One", 1, 6, [("One.A", 2, 3, []), ("One.B", 4, 6, [])]),
            ("Two", 7, 10, []),
        ]

    def test_orphan_becomes_root(self):
        tree = post_processing([_e("A", "1", 1), _e("Deep", "3.4", 5)], 10)
        assert [n.title for n in tree] == ["A", "Deep"]

    def test_closed_parent_is_not_reopened(self):
        entries = [_e("One", "1", 1), _e("Two", "2", 4), _e("Late", "1.2", 6)]
        tree = post_processing(entries, 10)
        assert [n.title for n in tree] == ["One", "Two", "Late"]
        assert all(not n.children for n in tree)
        assert validate_tree(finalize_ranges(tree, 10), 10).ok

    def test_orphan_root_closes_earlier_parents(self):
        entries = [_e("Two", "2", 1), _e("Deep", "2.1.1", 3), _e("TwoTwo", "2.2", 5), _e("Three", "3", 8)]
        tree = finalize_ranges(post_processing(entries, 10), 10)
        assert _shape(tree) == [
            ("Two", 1, 2, []), ("Deep", 3, 4, []), ("TwoTwo", 5, 7, []), ("Three", 8, 10, [])]
        assert validate_tree(tree, 10).ok

    def test_missing_codes_are_all_roots(self):
        tree = post_processing([_e("A", None, 1), _e("B", None, 3)], 5)
        assert _shape(tree) == [("A", 1, 2, []), ("B", 3, 5, [])]

    def test_empty(self):
        assert post_processing([], 5) == []


class TestCleanup:
    def test_keep_monotonic_drops_backward_entries(self):
        kept = keep_monotonic([_e("A", "1", 2), _e("B", "2", 1), _e("C", "3", 2), _e("D", "4", 6)])
        assert [e.title for e in kept] == ["A", "C", "D"]

    def test_preface_added_before_late_first_section(self):
        entries = add_preface_if_needed([_e("Intro", "1", 3)])
        assert entries[0].title == "Preface"
        assert entries[0].physical_index == 1
        assert entries[0].structure == "0"

    def test_no_preface_when_first_section_on_first_page(self):
        entries = [_e("Intro", "1", 1)]
        assert add_preface_if_needed(entries) == entries

    def test_preface_respects_first_index(self):
        entries = add_preface_if_needed([_e("Intro", "1", 6)], first_index=4)
        assert entries[0].physical_index == 4


class TestFinalizeRanges:
    def test_clamps_into_document(self):
        nodes = finalize_ranges([TreeNode("A", 0, 3), TreeNode("B", 4, 99)], 10)
        assert [(n.start_index, n.end_index) for n in nodes] == [(1, 3), (4, 10)]

    def test_parent_grows_over_children(self):
        parent = TreeNode("P", 1, 2, children=[TreeNode("C", 2, 6)])
        finalize_ranges([parent], 10)
        assert parent.end_index == 6

    def test_reversed_range_collapses_to_start(self):
        nodes = finalize_ranges([TreeNode("A", 5, 3)], 10)
        assert (nodes[0].start_index, nodes[0].end_index) == (5, 5)


class TestValidateTree:
    def test_valid_tree_with_shared_boundary_warns(self):
        tree = [TreeNode("A", 1, 5), TreeNode("B", 5, 10)]
        result = validate_tree(tree, 10)
        assert result.ok
        assert len(result.warnings) == 1

    def test_child_outside_parent(self):
        tree = [TreeNode("A", 1, 4, children=[TreeNode("C", 3, 6)])]
        result = validate_tree(tree, 10)
        assert not result.ok
        assert "not inside parent" in result.errors[0]

    def test_overlapping_siblings(self):
        result = validate_tree([TreeNode("A", 1, 6), TreeNode("B", 4, 10)], 10)
        assert any("overlaps" in e for e in result.errors)

    def test_siblings_out_of_order(self):
        result = validate_tree([TreeNode("A", 5, 6), TreeNode("B", 1, 2)], 10)
        assert any("starts before" in e for e in result.errors)

    def test_out_of_bounds(self):
        assert not validate_tree([TreeNode("A", 1, 11)], 10).ok

    def test_empty_tree(self):
        assert not validate_tree([], 10).ok

    def test_summary_text(self):
        assert "All checks passed" in validate_tree([TreeNode("A", 1, 10)], 10).summary()
