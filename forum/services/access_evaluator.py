"""Permission checking for forum actions.

This is the one place where the category access rules are defined:

    - Actions: view, post, reply, moderate
    - A user holds zero or more roles; anonymous callers hold the guest role
    - Any role of type ``admin`` allows everything, rows are not consulted
    - A category with no permission rows is public: ``view`` is allowed,
      ``post``/``reply`` follow ``public_categories_allow_posting``,
      ``moderate`` is never granted
    - Otherwise an action is allowed if any held role has a row granting it;
      there is no explicit deny
    - A storage failure while checking denies the action

Denied ``view`` is reported as not-found so that hidden categories cannot be
probed for.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..models import Category, Role, RoleType, GLOBAL_PERMISSIONS
from ..repositories import CategoryRepository, ThreadRepository, PostRepository
from ..exceptions import CategoryNotFoundError, ForbiddenError, ValidationError
from .permission_index import CategoryPermissionIndex
from .role_registry import RoleRegistry

logger = logging.getLogger(__name__)

# Action → CategoryPermission column.
_ACTION_COLUMNS: dict[str, str] = {
    "view": "can_view",
    "post": "can_post",
    "reply": "can_reply",
    "moderate": "can_moderate",
}

ACTIONS = tuple(_ACTION_COLUMNS)


def _has_admin_role(roles: List[Role]) -> bool:
    return any(role.role_type == RoleType.ADMIN.value for role in roles)


def _validate_action(action: str) -> str:
    if action not in _ACTION_COLUMNS:
        raise ValidationError(f"Unknown action: {action}", field="action")
    return _ACTION_COLUMNS[action]


class AccessEvaluator:
    """Allow/deny decisions for (user, action, category)."""

    def __init__(
        self,
        db: Session,
        app_settings: Optional[Settings] = None,
        registry: Optional[RoleRegistry] = None,
        index: Optional[CategoryPermissionIndex] = None,
    ):
        self.db = db
        self.settings = app_settings or default_settings
        self.registry = registry or RoleRegistry(db)
        self.index = index or CategoryPermissionIndex(db)
        self.category_repo = CategoryRepository(db)
        self.thread_repo = ThreadRepository(db)
        self.post_repo = PostRepository(db)

    def can(self, user_id: Optional[str], action: str, category_id: int) -> bool:
        """Whether *user_id* may perform *action* in *category_id*.

        Admins are allowed before anything else is looked up, including
        whether the category exists. For everyone else unknown categories are
        denied. Storage errors are logged and denied.
        """
        column = _validate_action(action)
        try:
            roles = self.registry.roles_for_user(user_id)
            if _has_admin_role(roles):
                return True

            if self.category_repo.get_by_id_optional(category_id) is None:
                return False

            rows = self.index.rows_for_category(category_id)
            if not rows:
                return self._public_default(action)

            held = {role.id for role in roles}
            return any(getattr(row, column) for row in rows if row.role_id in held)
        except SQLAlchemyError:
            logger.error(
                "Permission lookup failed, denying",
                extra={"user_id": user_id, "action": action, "category_id": category_id},
                exc_info=True,
            )
            return False

    def _public_default(self, action: str) -> bool:
        if action == "view":
            return True
        if action in ("post", "reply"):
            return self.settings.public_categories_allow_posting
        return False

    def ensure_can(self, user_id: Optional[str], action: str, category_id: int) -> Category:
        """Return the category if *action* is allowed, raise otherwise.

        Raises:
            CategoryNotFoundError: the category does not exist or is not visible.
            ForbiddenError: the category is visible but *action* is denied.
        """
        _validate_action(action)
        category = self.category_repo.get_by_id_optional(category_id)
        if category is None or not self.can(user_id, "view", category_id):
            raise CategoryNotFoundError(category_id)
        if action != "view" and not self.can(user_id, action, category_id):
            raise ForbiddenError(f"Not allowed to {action} in this category")
        return category

    def ensure_can_view(self, user_id: Optional[str], category_id: int) -> Category:
        return self.ensure_can(user_id, "view", category_id)

    def has_global_permission(self, user_id: Optional[str], permission: str) -> bool:
        """Whether any held role carries the forum-wide flag *permission*."""
        if permission not in GLOBAL_PERMISSIONS:
            raise ValidationError(f"Unknown global permission: {permission}", field="permission")
        try:
            roles = self.registry.roles_for_user(user_id)
            return _has_admin_role(roles) or any(getattr(role, permission) for role in roles)
        except SQLAlchemyError:
            logger.error(
                "Global permission lookup failed, denying",
                extra={"user_id": user_id, "permission": permission},
                exc_info=True,
            )
            return False

    def is_admin_or_moderator(self, user_id: Optional[str]) -> bool:
        try:
            roles = self.registry.roles_for_user(user_id)
        except SQLAlchemyError:
            logger.error("Role lookup failed, denying", extra={"user_id": user_id}, exc_info=True)
            return False
        return any(
            role.role_type in (RoleType.ADMIN.value, RoleType.MODERATOR.value) for role in roles
        )

    def accessible_category_ids(self, user_id: Optional[str]) -> List[int]:
        """Ids of every category *user_id* may view, in display order."""
        try:
            roles = self.registry.roles_for_user(user_id)
            categories = self.category_repo.get_all()
            if _has_admin_role(roles):
                return [c.id for c in categories]
            visible = self.index.filter_visible(categories, [role.id for role in roles])
            return [c.id for c in visible]
        except SQLAlchemyError:
            logger.error(
                "Category visibility lookup failed, denying",
                extra={"user_id": user_id},
                exc_info=True,
            )
            return []

    def category_id_for_thread(self, thread_id: int) -> Optional[int]:
        thread = self.thread_repo.get_by_id_optional(thread_id)
        return thread.category_id if thread else None

    def category_id_for_post(self, post_id: int) -> Optional[int]:
        post = self.post_repo.get_by_id_optional(post_id)
        if post is None:
            return None
        return self.category_id_for_thread(post.thread_id)
