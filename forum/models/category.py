"""Category header, category and per-role category permission models."""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class CatHeader(Base):
    """Grouping heading shown above a list of categories."""

    __tablename__ = "forum_cat_headers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    categories = relationship("Category", back_populates="header")


class Category(Base):
    """Forum category.

    ``thread_count`` and ``post_count`` are denormalized caches. They are
    maintained with atomic increments by CounterService and can be rebuilt
    from live rows by StatsService. ``post_count`` excludes first posts.
    """

    __tablename__ = "forum_categories"
    __table_args__ = (
        Index("ix_forum_categories_header_id", "header_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    header_id = Column(Integer, ForeignKey("forum_cat_headers.id"), nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    thread_count = Column(Integer, nullable=False, default=0)
    post_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    header = relationship("CatHeader", back_populates="categories")
    permissions = relationship("CategoryPermission", back_populates="category", passive_deletes=True)


class CategoryPermission(Base):
    """What one role may do in one category.

    A category with no rows at all is public. The admin role never has rows;
    its access is implicit.
    """

    __tablename__ = "forum_category_perms"
    __table_args__ = (
        UniqueConstraint("category_id", "role_id", name="uq_forum_category_perms_category_role"),
        Index("ix_forum_category_perms_role_id", "role_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer,
        ForeignKey("forum_categories.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_id = Column(
        Integer,
        ForeignKey("forum_roles.id", ondelete="CASCADE"),
        nullable=False,
    )
    can_view = Column(Boolean, nullable=False, default=False)
    can_post = Column(Boolean, nullable=False, default=False)
    can_reply = Column(Boolean, nullable=False, default=False)
    can_moderate = Column(Boolean, nullable=False, default=False)

    category = relationship("Category", back_populates="permissions")
