"""
Tests for the LCS line diff and its proportion bar.
"""

import json
import unittest

from src.content.diff import compute_diff, diff_documents
from src.types.version import DiffLineType, DiffResult


def kinds(result):
    return [(line.type, line.content) for line in result.lines]


class TestComputeDiff(unittest.TestCase):
    """Tests for compute_diff."""

    def test_identical_texts_are_all_unchanged(self):
        text = "line1\nline2\nline3"
        result = compute_diff(text, text)
        self.assertEqual(result.added, 0)
        self.assertEqual(result.removed, 0)
        self.assertFalse(result.has_changes)
        self.assertTrue(all(line.type == DiffLineType.UNCHANGED for line in result.lines))
        self.assertEqual(len(result.lines), 3)

    def test_empty_to_two_lines(self):
        result = compute_diff("", "line1\nline2")
        self.assertEqual(kinds(result), [
            (DiffLineType.ADDED, "line1"),
            (DiffLineType.ADDED, "line2"),
        ])
        self.assertEqual(result.added, 2)

    def test_all_removed(self):
        result = compute_diff("a\nb", "")
        self.assertEqual(result.removed, 2)
        self.assertEqual(result.added, 0)

    def test_both_empty_is_empty_diff(self):
        result = compute_diff("", "")
        self.assertEqual(result.lines, [])
        self.assertFalse(result.has_changes)

    def test_line_removed_from_middle(self):
        result = compute_diff("a\nb\nc", "a\nc")
        self.assertEqual(kinds(result), [
            (DiffLineType.UNCHANGED, "a"),
            (DiffLineType.REMOVED, "b"),
            (DiffLineType.UNCHANGED, "c"),
        ])

    def test_replacement_lists_removed_before_added(self):
        result = compute_diff("a\nb", "a\nc")
        self.assertEqual(kinds(result), [
            (DiffLineType.UNCHANGED, "a"),
            (DiffLineType.REMOVED, "b"),
            (DiffLineType.ADDED, "c"),
        ])

    def test_counts_match_lines(self):
        result = compute_diff("x\ny\nz", "y\nz\nw\nv")
        self.assertEqual(result.added, sum(1 for l in result.lines if l.type == DiffLineType.ADDED))
        self.assertEqual(result.removed, sum(1 for l in result.lines if l.type == DiffLineType.REMOVED))
        self.assertEqual((result.added, result.removed), (2, 1))


class TestProportionBar(unittest.TestCase):
    """Tests for DiffResult.proportion_bar."""

    def test_no_changes_is_empty(self):
        self.assertEqual(DiffResult().proportion_bar(), "")

    def test_even_split(self):
        self.assertEqual(DiffResult(added=3, removed=3).proportion_bar(), "+++++-----")

    def test_only_additions(self):
        self.assertEqual(DiffResult(added=4).proportion_bar(), "+" * 10)

    def test_small_side_keeps_one_cell(self):
        self.assertEqual(DiffResult(added=1, removed=99).proportion_bar(), "+" + "-" * 9)
        self.assertEqual(DiffResult(added=99, removed=1).proportion_bar(), "+" * 9 + "-")


class TestDiffDocuments(unittest.TestCase):
    """Diffs of serialized documents use the prefixed rendering."""

    def test_heading_change(self):
        old = json.dumps([
            {"type": "heading", "props": {"level": 2}, "content": [{"type": "text", "text": "Intro"}]},
            {"type": "paragraph", "content": [{"type": "text", "text": "Body"}]},
        ])
        new = json.dumps([
            {"type": "heading", "props": {"level": 2}, "content": [{"type": "text", "text": "Overview"}]},
            {"type": "paragraph", "content": [{"type": "text", "text": "Body"}]},
        ])
        result = diff_documents(old, new)
        self.assertEqual(kinds(result), [
            (DiffLineType.REMOVED, "## Intro"),
            (DiffLineType.ADDED, "## Overview"),
            (DiffLineType.UNCHANGED, "Body"),
        ])


if __name__ == "__main__":
    unittest.main()
