"""
Plain-text extraction from serialized block documents.

Editor documents are stored as a JSON array of block nodes::

    {"type": "heading", "props": {"level": 2}, "content": [...], "children": [...]}

``content`` holds inline nodes (text runs, links wrapping text runs) or, for
tables, a ``{"type": "tableContent", "rows": [...]}`` object. ``children``
holds nested blocks.

Two renderings are produced:
- plain: block texts joined with spaces, no markup (input to similarity)
- diff: one block per line with a markdown-like prefix per block type and
  two-space indentation for nested blocks (input to the line diff)
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from src.errors import ParseError

logger = logging.getLogger(__name__)


def _heading_prefix(props: Dict[str, Any]) -> str:
    try:
        level = int(props.get("level", 1))
    except (TypeError, ValueError):
        level = 1
    return "#" * max(1, min(level, 6)) + " "


def _check_prefix(props: Dict[str, Any]) -> str:
    return "☑ " if props.get("checked") else "☐ "


# Block type -> prefix builder for the diff rendering
BLOCK_PREFIXES: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "heading": _heading_prefix,
    "bulletListItem": lambda props: "• ",
    "numberedListItem": lambda props: "1. ",
    "checkListItem": _check_prefix,
    "quote": lambda props: "> ",
}

CODE_FENCE = "```"


def parse_blocks(serialized: Union[str, bytes, None]) -> List[Any]:
    """
    Parse a serialized document into its list of top-level blocks.

    Raises:
        ParseError: If the payload is not JSON or its root is not an array.
    """
    if serialized is None:
        raise ParseError("Document content is empty")
    try:
        data = json.loads(serialized)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Document content is not valid JSON: {e}")

    if not isinstance(data, list):
        raise ParseError("Document root must be an array of blocks")
    return data


def _inline_text(content: Any) -> str:
    """Concatenate the leaf text runs of a block's inline content."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(_inline_text(node) for node in content)
    if not isinstance(content, dict):
        return ""

    if content.get("type") == "tableContent" or "rows" in content:
        rows = []
        for row in content.get("rows") or []:
            cells = row.get("cells") if isinstance(row, dict) else None
            rows.append(" | ".join(_inline_text(cell) for cell in cells or []))
        return "\n".join(r for r in rows if r.strip())

    text = content.get("text")
    if isinstance(text, str):
        return text
    return _inline_text(content.get("content"))


def _block_text(block: Dict[str, Any], for_diff: bool) -> str:
    text = _inline_text(block.get("content"))
    if not for_diff:
        return text

    block_type = block.get("type", "")
    props = block.get("props") or {}
    if block_type == "codeBlock":
        return f"{CODE_FENCE}\n{text}\n{CODE_FENCE}"

    prefix_builder = BLOCK_PREFIXES.get(block_type)
    if prefix_builder and text:
        return prefix_builder(props) + text
    return text


def _walk(blocks: List[Any], for_diff: bool, depth: int, out: List[str]) -> None:
    indent = "  " * depth if for_diff else ""
    for block in blocks:
        if not isinstance(block, dict):
            continue
        text = _block_text(block, for_diff)
        if text.strip():
            if indent:
                text = "\n".join(indent + line for line in text.split("\n"))
            out.append(text)
        children = block.get("children")
        if isinstance(children, list) and children:
            _walk(children, for_diff, depth + 1, out)


def blocks_to_text(blocks: List[Any], for_diff: bool = False) -> str:
    """Render already-parsed blocks as plain or diff-friendly text."""
    parts: List[str] = []
    _walk(blocks, for_diff, 0, parts)
    return ("\n" if for_diff else " ").join(parts)


def extract_text(serialized: Optional[str], for_diff: bool = False) -> str:
    """
    Extract text from a serialized block document.

    Never raises: malformed input is returned unchanged so callers can still
    compare or diff it as raw text.
    """
    if serialized is None:
        return ""
    try:
        blocks = parse_blocks(serialized)
    except ParseError:
        logger.debug("Falling back to raw text for unparseable document content")
        return serialized
    return blocks_to_text(blocks, for_diff=for_diff)
