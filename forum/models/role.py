"""Role and UserRole models.

Roles carry forum-wide capability flags. Which categories a role may use is
stored separately in CategoryPermission. Users come from the host platform and
are referenced only by their string id.
"""

from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class RoleType(str, Enum):
    """Tag identifying the system roles. Custom roles share one tag."""

    ADMIN = "admin"
    MODERATOR = "moderator"
    DEFAULT = "default"
    GUEST = "guest"
    CUSTOM = "custom"


# At most one role may exist for each of these types.
SYSTEM_ROLE_TYPES = (RoleType.ADMIN, RoleType.MODERATOR, RoleType.DEFAULT, RoleType.GUEST)

# Role-level capability flags that can be checked with has_global_permission().
GLOBAL_PERMISSIONS = ("can_access_admin_tools", "can_edit_roles", "can_edit_categories")


class Role(Base):
    """Named bundle of forum-wide capabilities.

    ``role_type`` is deliberately not unique in the schema: every custom role
    uses ``"custom"``. Uniqueness of the system types is kept by the
    application (see RoleRegistry and the repair routine).
    """

    __tablename__ = "forum_roles"
    __table_args__ = (
        Index("ix_forum_roles_role_type", "role_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    color_light = Column(String(32), nullable=True)
    color_dark = Column(String(32), nullable=True)
    can_access_admin_tools = Column(Boolean, nullable=False, default=False)
    can_edit_roles = Column(Boolean, nullable=False, default=False)
    can_edit_categories = Column(Boolean, nullable=False, default=False)
    is_system_role = Column(Boolean, nullable=False, default=False)
    role_type = Column(String(20), nullable=True, default=RoleType.CUSTOM.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignments = relationship("UserRole", back_populates="role", passive_deletes=True)

    @property
    def is_admin(self) -> bool:
        return self.role_type == RoleType.ADMIN.value

    @property
    def is_moderator_restricted(self) -> bool:
        """Guest and default roles can never hold moderate permissions."""
        return self.role_type in (RoleType.GUEST.value, RoleType.DEFAULT.value)

    @property
    def is_deletable(self) -> bool:
        return self.role_type == RoleType.CUSTOM.value and not self.is_system_role


class UserRole(Base):
    """Assignment of a role to a host-platform user."""

    __tablename__ = "forum_user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_forum_user_roles_user_role"),
        Index("ix_forum_user_roles_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    role_id = Column(
        Integer,
        ForeignKey("forum_roles.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    role = relationship("Role", back_populates="assignments")
