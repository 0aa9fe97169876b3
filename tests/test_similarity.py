"""
Tests for word-level similarity and the minor-edit threshold.
"""

import unittest

from src.content.similarity import SIMILARITY_THRESHOLD, is_minor_edit, text_similarity


def words(start: int, stop: int) -> str:
    return " ".join(f"w{i}" for i in range(start, stop))


class TestTextSimilarity(unittest.TestCase):
    """Tests for text_similarity."""

    def test_identical_strings_score_one(self):
        for text in ["hello", "a b c", "Some longer text with words"]:
            self.assertEqual(text_similarity(text, text), 1.0)

    def test_both_empty_score_one(self):
        self.assertEqual(text_similarity("", ""), 1.0)

    def test_one_empty_side_scores_zero(self):
        self.assertEqual(text_similarity("", "a b"), 0.0)
        self.assertEqual(text_similarity("a b", ""), 0.0)

    def test_jaccard_of_word_sets(self):
        self.assertEqual(text_similarity("a b c", "a b c d"), 0.75)

    def test_disjoint_texts_score_zero(self):
        self.assertEqual(text_similarity("alpha beta", "gamma delta"), 0.0)

    def test_case_insensitive(self):
        self.assertEqual(text_similarity("Hello World", "hello world"), 1.0)

    def test_word_order_and_repetition_ignored(self):
        self.assertEqual(text_similarity("one two two three", "three two one"), 1.0)

    def test_whitespace_only_sides(self):
        """Two different whitespace-only strings have no words on either side."""
        self.assertEqual(text_similarity("  ", "\n"), 1.0)

    def test_score_is_symmetric(self):
        a, b = "the quick brown fox", "the slow brown dog"
        self.assertEqual(text_similarity(a, b), text_similarity(b, a))


class TestMinorEditThreshold(unittest.TestCase):
    """Tests for the inclusive 0.85 threshold."""

    def test_default_threshold(self):
        self.assertEqual(SIMILARITY_THRESHOLD, 0.85)

    def test_exactly_threshold_is_minor(self):
        similarity = text_similarity(words(0, 20), words(0, 17))
        self.assertEqual(similarity, 0.85)
        self.assertTrue(is_minor_edit(similarity))

    def test_just_below_threshold_is_major(self):
        similarity = text_similarity(words(0, 25), words(0, 21))
        self.assertAlmostEqual(similarity, 0.84)
        self.assertFalse(is_minor_edit(similarity))

    def test_custom_threshold(self):
        self.assertTrue(is_minor_edit(0.5, threshold=0.5))
        self.assertFalse(is_minor_edit(0.49, threshold=0.5))


if __name__ == "__main__":
    unittest.main()
