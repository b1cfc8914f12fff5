"""Pydantic schemas for service inputs and outputs."""

from .search import SearchRequest, SearchResults, ThreadHit, PostHit
from .role import RoleCreate, RoleUpdate, CategoryPermissionInput

__all__ = [
    "SearchRequest",
    "SearchResults",
    "ThreadHit",
    "PostHit",
    "RoleCreate",
    "RoleUpdate",
    "CategoryPermissionInput",
]
