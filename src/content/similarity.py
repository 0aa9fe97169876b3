"""
Word-level similarity between two plain-text renderings of a document.

Used by the save path to decide whether an edit is minor (update the latest
version in place) or major (cut a new version). The metric is a Jaccard index
over lowercase whitespace-split word sets: cheap enough to run on every
autosave, blind to word order and repetition.
"""

SIMILARITY_THRESHOLD = 0.85


def _word_set(text: str) -> set:
    return set(text.lower().split())


def text_similarity(a: str, b: str) -> float:
    """
    Return a similarity score in [0, 1] between two strings.

    Identical strings (including two empty ones) score 1.0 and a single
    empty side scores 0.0. Otherwise the score is |A & B| / |A | B| over
    the word sets of each side.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    words_a = _word_set(a)
    words_b = _word_set(b)
    union = words_a | words_b
    if not union:
        # Both sides were whitespace only
        return 1.0

    return len(words_a & words_b) / len(union)


def is_minor_edit(similarity: float, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Inclusive threshold check: a score equal to the threshold is minor."""
    return similarity >= threshold
