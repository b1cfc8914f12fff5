"""Business logic services."""

from .access_evaluator import AccessEvaluator
from .permission_index import CategoryPermissionIndex
from .role_registry import RoleRegistry
from .role_service import RoleService
from .search_service import SearchService
from .thread_service import ThreadService

__all__ = [
    "AccessEvaluator",
    "CategoryPermissionIndex",
    "RoleRegistry",
    "RoleService",
    "SearchService",
    "ThreadService",
]
