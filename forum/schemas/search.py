"""Search request and result schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class SearchRequest(BaseModel):
    """Parameters of one search call.

    ``limit`` is left unbounded here; SearchService clamps it to the
    configured range so the bound can change without a schema change.
    """
    query: str
    user_id: Optional[str] = None
    search_threads: bool = True
    search_posts: bool = True
    category_id: Optional[int] = None
    limit: Optional[int] = None
    offset: int = 0


class ThreadHit(BaseModel):
    """A matching thread."""
    id: int
    category_id: int
    author_id: str
    title: str
    slug: str
    post_count: int
    is_pinned: bool
    is_locked: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostHit(BaseModel):
    """A matching reply post."""
    id: int
    thread_id: int
    author_id: str
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SearchResults(BaseModel):
    """One page of threads and one page of posts, with total match counts."""
    threads: List[ThreadHit] = Field(default_factory=list)
    posts: List[PostHit] = Field(default_factory=list)
    thread_count: int = 0
    post_count: int = 0
