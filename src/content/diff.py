"""
Line diff between two text renderings using a longest-common-subsequence table.

The table is O(m*n) in memory; renderings are a few hundred lines at most.
"""

from typing import List

from src.types.version import DiffLine, DiffLineType, DiffResult

from .extraction import extract_text


def _split_lines(text: str) -> List[str]:
    if not text:
        return []
    return text.split("\n")


def compute_diff(old: str, new: str) -> DiffResult:
    """
    Diff ``old`` against ``new`` line by line.

    Backtracking runs from the end of both sides; when both neighbours carry
    the same LCS length the new-side line is consumed first, so an
    interleaved change reads as the added line after the removed one.
    """
    a = _split_lines(old)
    b = _split_lines(new)
    m, n = len(a), len(b)

    table = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                table[i][j] = table[i - 1][j - 1] + 1
            else:
                table[i][j] = max(table[i - 1][j], table[i][j - 1])

    lines: List[DiffLine] = []
    added = removed = 0
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0 and a[i - 1] == b[j - 1]:
            lines.append(DiffLine(type=DiffLineType.UNCHANGED, content=a[i - 1]))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or table[i][j - 1] >= table[i - 1][j]):
            lines.append(DiffLine(type=DiffLineType.ADDED, content=b[j - 1]))
            added += 1
            j -= 1
        else:
            lines.append(DiffLine(type=DiffLineType.REMOVED, content=a[i - 1]))
            removed += 1
            i -= 1

    lines.reverse()
    return DiffResult(lines=lines, added=added, removed=removed)


def diff_documents(old_body_json: str, new_body_json: str) -> DiffResult:
    """Diff two serialized documents through their diff-friendly renderings."""
    return compute_diff(
        extract_text(old_body_json, for_diff=True),
        extract_text(new_body_json, for_diff=True),
    )
