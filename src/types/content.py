"""
Pydantic models for posts, projects and tags.

Posts and projects share one shape (``ContentItem``) distinguished by
``ContentType``; the public API addresses them through ``ContentCollection``.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ContentType(str, Enum):
    """Kinds of versioned content."""
    POST = "post"
    PROJECT = "project"


class ContentCollection(str, Enum):
    """URL collection names for each content type."""
    POSTS = "posts"
    PROJECTS = "projects"

    @property
    def content_type(self) -> ContentType:
        return ContentType.POST if self is ContentCollection.POSTS else ContentType.PROJECT


class ContentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Tag(BaseModel):
    """A label attached to content items."""

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    slug: str


class AuthorProfile(BaseModel):
    """Public profile row (``secure_profiles``)."""

    id: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.full_name or self.username


class ContentItem(BaseModel):
    """
    A post or project.

    ``current_version_id`` is the editable draft pointer;
    ``published_version_id`` is the only snapshot readers may see.
    ``status`` is published exactly when the published pointer is set.
    """

    id: str = Field(..., description="Unique identifier (UUID)")
    type: ContentType = Field(..., description="Content kind")
    title: str = Field(default="", description="Live draft title")
    slug: str = Field(..., description="URL slug, unique per type")
    summary: Optional[str] = Field(default=None, description="Short excerpt")
    cover_image: Optional[str] = Field(default=None, description="Cover image URL")
    owner_id: Optional[str] = Field(default=None, description="Owning user ID")
    status: ContentStatus = Field(default=ContentStatus.DRAFT)
    current_version_id: Optional[str] = Field(
        default=None,
        description="Draft pointer; set once the first version exists"
    )
    published_version_id: Optional[str] = Field(
        default=None,
        description="Public snapshot pointer; null while unpublished"
    )
    published_at: Optional[datetime] = None
    sort_order: int = Field(default=0, description="Ordering within project listings")
    created_at: datetime
    updated_at: datetime

    @property
    def is_published(self) -> bool:
        return self.status == ContentStatus.PUBLISHED and self.published_version_id is not None


class ContentView(BaseModel):
    """
    An item rendered through one of its versions.

    Readers always get the published snapshot; owners previewing get the
    draft (``is_draft`` is true).
    """

    id: str
    type: ContentType
    slug: str
    status: ContentStatus
    title: str
    summary: Optional[str] = None
    body_json: str = "[]"
    cover_image: Optional[str] = None
    version_id: Optional[str] = None
    version_number: Optional[int] = None
    published_at: Optional[datetime] = None
    updated_at: datetime
    is_draft: bool = False
    tags: List[Tag] = Field(default_factory=list)
    author: Optional[AuthorProfile] = None


class ContentSummary(BaseModel):
    """Listing row (no body)."""

    id: str
    type: ContentType
    slug: str
    status: ContentStatus
    title: str
    summary: Optional[str] = None
    cover_image: Optional[str] = None
    published_at: Optional[datetime] = None
    updated_at: datetime
    sort_order: int = 0
    tags: List[Tag] = Field(default_factory=list)
    author: Optional[AuthorProfile] = None


class ContentListResponse(BaseModel):
    success: bool = True
    items: List[ContentSummary]
    total: int
    page: int
    page_size: int


# =============================================================================
# Request models
# =============================================================================


class CreateContentRequest(BaseModel):
    """Create a post or project; without a body an empty draft is created."""

    title: str = Field(default="", max_length=500)
    slug: Optional[str] = Field(default=None, max_length=200)
    summary: Optional[str] = Field(default=None, max_length=2000)
    body_json: Optional[str] = Field(
        default=None,
        description="Initial serialized block tree"
    )
    cover_image: Optional[str] = None
    tag_ids: List[str] = Field(default_factory=list)
    publish: bool = Field(default=False, description="Publish the initial version")


class UpdateContentRequest(BaseModel):
    """Item-level edits that do not go through versioning."""

    title: Optional[str] = Field(default=None, max_length=500)
    slug: Optional[str] = Field(default=None, max_length=200)
    summary: Optional[str] = Field(default=None, max_length=2000)
    sort_order: Optional[int] = None


class CoverImageRequest(BaseModel):
    cover_image: Optional[str] = Field(
        default=None,
        description="Cover image URL, or null to clear"
    )


class ReorderProjectsRequest(BaseModel):
    item_ids: List[str] = Field(..., min_length=1)


class TagRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class DeleteContentResponse(BaseModel):
    success: bool = True
    item_id: str
    queued_asset_keys: List[str] = Field(default_factory=list)


class ContentItemResponse(BaseModel):
    success: bool = True
    item: ContentItem


class ContentViewResponse(BaseModel):
    success: bool = True
    item: ContentView


class ReorderProjectsResponse(BaseModel):
    success: bool = True
    items: List[ContentItem]


class PortfolioOverviewResponse(BaseModel):
    """Counts and latest entries for the site landing page."""

    success: bool = True
    post_count: int
    project_count: int
    recent_posts: List[ContentSummary]
    recent_projects: List[ContentSummary]


class TagResponse(BaseModel):
    success: bool = True
    tag: Tag


class TagListResponse(BaseModel):
    success: bool = True
    tags: List[Tag]
