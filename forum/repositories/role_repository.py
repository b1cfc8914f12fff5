"""Role and user-role assignment data access."""

from typing import List, Optional

from sqlalchemy import func

from ..models import Role, UserRole
from ..exceptions import RoleNotFoundError
from .base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """Data access for roles.

    Lookups by type always order by id so that, when duplicates exist, the
    lowest id comes first.
    """

    model_class = Role
    not_found_error = RoleNotFoundError

    def get_all(self) -> List[Role]:
        return self.db.query(Role).order_by(Role.id).all()

    def list_by_type(self, role_type: str) -> List[Role]:
        """All roles of *role_type*, lowest id first."""
        return (
            self.db.query(Role)
            .filter(Role.role_type == role_type)
            .order_by(Role.id)
            .all()
        )

    def list_by_ids(self, role_ids: List[int]) -> List[Role]:
        if not role_ids:
            return []
        return self.db.query(Role).filter(Role.id.in_(role_ids)).order_by(Role.id).all()

    def find_by_name(self, name: str) -> List[Role]:
        """Roles whose name matches *name* case-insensitively."""
        return (
            self.db.query(Role)
            .filter(func.lower(Role.name) == name.lower())
            .order_by(Role.id)
            .all()
        )

    def list_untyped(self) -> List[Role]:
        """Roles created before role types existed."""
        return self.db.query(Role).filter(
            (Role.role_type.is_(None)) | (Role.role_type == "")
        ).all()

    def delete(self, role: Role) -> None:
        self.db.delete(role)
        self.db.flush()


class UserRoleRepository:
    """Data access for user-role assignments."""

    def __init__(self, db):
        self.db = db

    def role_ids_for_user(self, user_id: str) -> List[int]:
        rows = (
            self.db.query(UserRole.role_id)
            .filter(UserRole.user_id == user_id)
            .order_by(UserRole.role_id)
            .all()
        )
        return [row.role_id for row in rows]

    def find(self, user_id: str, role_id: int) -> Optional[UserRole]:
        return self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
        ).first()

    def create(self, user_id: str, role_id: int) -> UserRole:
        assignment = UserRole(user_id=user_id, role_id=role_id)
        self.db.add(assignment)
        self.db.flush()
        return assignment

    def delete(self, user_id: str, role_id: int) -> bool:
        """Remove one assignment. Returns False if the user did not hold the role."""
        count = self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
        ).delete(synchronize_session=False)
        self.db.flush()
        return count > 0

    def list_for_role(self, role_id: int) -> List[UserRole]:
        return self.db.query(UserRole).filter(UserRole.role_id == role_id).order_by(UserRole.id).all()

    def delete_for_role(self, role_id: int) -> int:
        count = self.db.query(UserRole).filter(
            UserRole.role_id == role_id
        ).delete(synchronize_session=False)
        self.db.flush()
        return count
