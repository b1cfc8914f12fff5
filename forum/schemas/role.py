"""Role administration schemas."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional


class RoleBase(BaseModel):
    """Fields shared by role create and update."""
    description: Optional[str] = None
    color_light: Optional[str] = Field(None, max_length=32)
    color_dark: Optional[str] = Field(None, max_length=32)


class RoleCreate(RoleBase):
    """Schema for creating a custom role."""
    name: str = Field(..., min_length=1, max_length=255)
    can_access_admin_tools: bool = False
    can_edit_roles: bool = False
    can_edit_categories: bool = False

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Role name cannot be blank")
        return v


class RoleUpdate(RoleBase):
    """Schema for updating a role. Only fields that are set are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    can_access_admin_tools: Optional[bool] = None
    can_edit_roles: Optional[bool] = None
    can_edit_categories: Optional[bool] = None


class CategoryPermissionInput(BaseModel):
    """One category grant for a role.

    ``can_post`` and ``can_reply`` follow ``can_view`` when omitted.
    """
    category_id: int
    can_view: bool = False
    can_post: Optional[bool] = None
    can_reply: Optional[bool] = None
    can_moderate: bool = False

    def resolved(self) -> dict:
        """Flag values with the defaults applied."""
        return {
            "can_view": self.can_view,
            "can_post": self.can_view if self.can_post is None else self.can_post,
            "can_reply": self.can_view if self.can_reply is None else self.can_reply,
            "can_moderate": self.can_moderate,
        }
