"""Database models."""

from .role import Role, UserRole, RoleType, SYSTEM_ROLE_TYPES, GLOBAL_PERMISSIONS
from .category import CatHeader, Category, CategoryPermission
from .thread import Thread, Post

__all__ = [
    "Role", "UserRole", "RoleType", "SYSTEM_ROLE_TYPES", "GLOBAL_PERMISSIONS",
    "CatHeader", "Category", "CategoryPermission",
    "Thread", "Post",
]
