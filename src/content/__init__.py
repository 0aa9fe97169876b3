"""
Content versioning: extraction, similarity, diffing, version history and
the publish/draft workflow for posts and projects.
"""

from .diff import compute_diff, diff_documents
from .extraction import extract_text, parse_blocks
from .similarity import SIMILARITY_THRESHOLD, is_minor_edit, text_similarity
from .service import ContentService, ContentServiceFactory, get_content_service

__all__ = [
    "compute_diff",
    "diff_documents",
    "extract_text",
    "parse_blocks",
    "SIMILARITY_THRESHOLD",
    "is_minor_edit",
    "text_similarity",
    "ContentService",
    "ContentServiceFactory",
    "get_content_service",
]
