"""Data access repositories."""

from .base import BaseRepository
from .role_repository import RoleRepository, UserRoleRepository
from .category_repository import CategoryRepository, CategoryPermissionRepository
from .thread_repository import ThreadRepository, PostRepository

__all__ = [
    "BaseRepository",
    "RoleRepository",
    "UserRoleRepository",
    "CategoryRepository",
    "CategoryPermissionRepository",
    "ThreadRepository",
    "PostRepository",
]
