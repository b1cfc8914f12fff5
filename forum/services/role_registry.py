"""Role lookups by system type and by user."""

import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..models import Role, RoleType
from ..repositories import RoleRepository, UserRoleRepository
from ..exceptions import DuplicateSystemRoleError, ValidationError

logger = logging.getLogger(__name__)


def _type_value(role_type: Union[RoleType, str]) -> str:
    try:
        return RoleType(role_type).value
    except ValueError:
        raise ValidationError(f"Unknown role type: {role_type}", field="role_type") from None


class RoleRegistry:
    """Resolves system roles and the roles a user holds.

    There is no unique index on ``role_type`` (custom roles share it), so
    lookups tolerate duplicates: the lowest id wins and the duplicate is
    logged for the repair routine to reconcile.
    """

    def __init__(self, db: Session):
        self.db = db
        self.role_repo = RoleRepository(db)
        self.user_role_repo = UserRoleRepository(db)

    def find_by_type(self, role_type: Union[RoleType, str]) -> Optional[Role]:
        """The role of *role_type* with the lowest id, or None if there is none."""
        value = _type_value(role_type)
        roles = self.role_repo.list_by_type(value)
        if not roles:
            return None
        if len(roles) > 1 and value != RoleType.CUSTOM.value:
            logger.warning(
                "Duplicate system roles found, using lowest id",
                extra={"role_type": value, "role_ids": [r.id for r in roles]},
            )
        return roles[0]

    def require_unique(self, role_type: Union[RoleType, str]) -> Optional[Role]:
        """Like find_by_type, but raise when the type is duplicated.

        Raises:
            DuplicateSystemRoleError: more than one role has *role_type*.
        """
        value = _type_value(role_type)
        roles = self.role_repo.list_by_type(value)
        if len(roles) > 1:
            raise DuplicateSystemRoleError(value, [r.id for r in roles])
        return roles[0] if roles else None

    def find_default_role(self) -> Optional[Role]:
        """Role given to every newly provisioned user."""
        return self.find_by_type(RoleType.DEFAULT)

    def find_guest_role(self) -> Optional[Role]:
        return self.find_by_type(RoleType.GUEST)

    def role_ids_for_user(self, user_id: Optional[str]) -> List[int]:
        """Role ids held by *user_id*.

        Anonymous callers (``None``) hold the guest role when one exists and
        nothing otherwise.
        """
        if user_id is None:
            guest = self.find_guest_role()
            return [guest.id] if guest else []
        return self.user_role_repo.role_ids_for_user(user_id)

    def roles_for_user(self, user_id: Optional[str]) -> List[Role]:
        return self.role_repo.list_by_ids(self.role_ids_for_user(user_id))
