"""Role administration and user-role assignments."""

import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..exceptions import ProtectedRoleError, RoleNotFoundError, ValidationError
from ..models import CategoryPermission, Role, RoleType, UserRole, GLOBAL_PERMISSIONS
from ..repositories import (
    CategoryPermissionRepository,
    CategoryRepository,
    RoleRepository,
    UserRoleRepository,
)
from ..schemas.role import CategoryPermissionInput, RoleCreate, RoleUpdate
from .role_registry import RoleRegistry

logger = logging.getLogger(__name__)


class RoleService:
    """Creates, edits and deletes roles, and assigns them to users.

    Only custom roles can be deleted. The admin role always keeps every
    global flag and never carries category rows, since its access is
    implicit.
    """

    def __init__(self, db: Session, registry: Optional[RoleRegistry] = None):
        self.db = db
        self.registry = registry or RoleRegistry(db)
        self.role_repo = RoleRepository(db)
        self.user_role_repo = UserRoleRepository(db)
        self.perm_repo = CategoryPermissionRepository(db)
        self.category_repo = CategoryRepository(db)

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def list_roles(self) -> List[Role]:
        return self.role_repo.get_all()

    def get_role(self, role_id: int) -> Role:
        return self.role_repo.get_by_id(role_id)

    def find_role(self, identifier: Union[int, str]) -> Role:
        """Resolve a numeric id or a case-insensitive role name.

        Raises:
            RoleNotFoundError: nothing matches.
            ValidationError: the name matches more than one role.
        """
        text = str(identifier).strip()
        if text.isdigit():
            return self.role_repo.get_by_id(int(text))

        matches = self.role_repo.find_by_name(text)
        if not matches:
            raise RoleNotFoundError(text)
        if len(matches) > 1:
            ids = ", ".join(str(r.id) for r in matches)
            raise ValidationError(
                f"Role name '{text}' is ambiguous (ids {ids}); use the numeric id",
                field="role",
            )
        return matches[0]

    def create_role(self, data: RoleCreate) -> Role:
        """Create a custom role."""
        role = self.role_repo.add(Role(
            name=data.name,
            description=data.description,
            color_light=data.color_light,
            color_dark=data.color_dark,
            can_access_admin_tools=data.can_access_admin_tools,
            can_edit_roles=data.can_edit_roles,
            can_edit_categories=data.can_edit_categories,
            is_system_role=False,
            role_type=RoleType.CUSTOM.value,
        ))
        self.db.commit()
        self.db.refresh(role)
        logger.info("Role created", extra={"role_id": role.id, "role_name": role.name})
        return role

    def update_role(self, role_id: int, data: RoleUpdate) -> Role:
        """Apply the fields set in *data*. Admin role flags stay on."""
        role = self.role_repo.get_by_id(role_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        for field in ("name", "description", "color_light", "color_dark"):
            if field in changes:
                setattr(role, field, changes[field])

        if role.is_admin:
            for flag in GLOBAL_PERMISSIONS:
                setattr(role, flag, True)
        else:
            for flag in GLOBAL_PERMISSIONS:
                if flag in changes:
                    setattr(role, flag, changes[flag])

        self.db.commit()
        self.db.refresh(role)
        return role

    def delete_role(self, role_id: int) -> None:
        """Delete a custom role with its category rows and assignments.

        Raises:
            RoleNotFoundError: no such role.
            ProtectedRoleError: the role is a system role.
        """
        role = self.role_repo.get_by_id(role_id)
        if not role.is_deletable:
            raise ProtectedRoleError(role_id, "System roles cannot be deleted")

        perms = self.perm_repo.delete_for_role(role_id)
        assignments = self.user_role_repo.delete_for_role(role_id)
        self.role_repo.delete(role)
        self.db.commit()
        logger.info(
            "Role deleted",
            extra={"role_id": role_id, "permissions_removed": perms, "assignments_removed": assignments},
        )

    # ------------------------------------------------------------------
    # Category permissions
    # ------------------------------------------------------------------

    def get_category_permissions(self, role_id: int) -> List[CategoryPermission]:
        self.role_repo.get_by_id(role_id)
        return self.perm_repo.rows_for_role(role_id)

    def set_category_permissions(
        self, role_id: int, permissions: List[CategoryPermissionInput]
    ) -> List[CategoryPermission]:
        """Replace every category row of *role_id* with *permissions*.

        Guest and default roles never keep ``can_moderate``.

        Raises:
            RoleNotFoundError: no such role.
            ProtectedRoleError: the role is the admin role.
            CategoryNotFoundError: an entry names an unknown category.
            ValidationError: the same category appears twice.
        """
        role = self.role_repo.get_by_id(role_id)
        if role.is_admin:
            raise ProtectedRoleError(role_id, "The admin role has implicit access to every category")

        seen = set()
        for perm in permissions:
            if perm.category_id in seen:
                raise ValidationError(
                    f"Category {perm.category_id} listed more than once", field="category_id"
                )
            seen.add(perm.category_id)
            self.category_repo.get_by_id(perm.category_id)

        self.perm_repo.delete_for_role(role_id)
        rows = []
        for perm in permissions:
            flags = perm.resolved()
            if role.is_moderator_restricted:
                flags["can_moderate"] = False
            rows.append(self.perm_repo.create(perm.category_id, role_id, **flags))
        self.db.commit()
        logger.info("Role permissions replaced", extra={"role_id": role_id, "categories": len(rows)})
        return rows

    # ------------------------------------------------------------------
    # User assignments
    # ------------------------------------------------------------------

    def get_user_role_ids(self, user_id: str) -> List[int]:
        return self.user_role_repo.role_ids_for_user(user_id)

    def has_role(self, user_id: str, role_id: int) -> bool:
        return self.user_role_repo.find(user_id, role_id) is not None

    def assign_role(self, user_id: str, role_id: int) -> Optional[UserRole]:
        """Give *user_id* the role. Returns None if it was already held."""
        self.role_repo.get_by_id(role_id)
        if self.has_role(user_id, role_id):
            return None
        assignment = self.user_role_repo.create(user_id, role_id)
        self.db.commit()
        logger.info("Role assigned", extra={"user_id": user_id, "role_id": role_id})
        return assignment

    def remove_role(self, user_id: str, role_id: int) -> bool:
        """Take the role away. Returns False if the user did not hold it."""
        removed = self.user_role_repo.delete(user_id, role_id)
        self.db.commit()
        if removed:
            logger.info("Role removed", extra={"user_id": user_id, "role_id": role_id})
        return removed

    def provision_user(self, user_id: str, is_admin: bool = False) -> List[int]:
        """Give a new user the default role, plus the admin role for platform admins.

        Returns the role ids that were newly assigned. Missing system roles
        are skipped with a warning; run the repair command to create them.
        """
        wanted = [RoleType.DEFAULT]
        if is_admin:
            wanted.append(RoleType.ADMIN)

        assigned = []
        for role_type in wanted:
            role = self.registry.find_by_type(role_type)
            if role is None:
                logger.warning(
                    "System role missing, cannot provision user",
                    extra={"user_id": user_id, "role_type": role_type.value},
                )
                continue
            if self.assign_role(user_id, role.id) is not None:
                assigned.append(role.id)
        return assigned
