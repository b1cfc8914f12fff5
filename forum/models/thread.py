"""Thread and Post models."""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Thread(Base):
    """Discussion thread inside a category.

    ``post_count`` counts replies only; the opening post is excluded.
    """

    __tablename__ = "forum_threads"
    __table_args__ = (
        Index("ix_forum_threads_category_id", "category_id"),
        Index("ix_forum_threads_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(Integer, ForeignKey("forum_categories.id"), nullable=False)
    author_id = Column(String(64), nullable=False)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    view_count = Column(Integer, nullable=False, default=0)
    post_count = Column(Integer, nullable=False, default=0)
    last_post_id = Column(Integer, nullable=True)
    is_locked = Column(Boolean, nullable=False, default=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    is_hidden = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Soft delete (NULL = active, timestamp = deleted)
    deleted_at = Column(DateTime(timezone=True), nullable=True, default=None)

    posts = relationship("Post", back_populates="thread")


class Post(Base):
    """A post in a thread. Exactly one post per thread has ``is_first_post``."""

    __tablename__ = "forum_posts"
    __table_args__ = (
        Index("ix_forum_posts_thread_id", "thread_id"),
        Index("ix_forum_posts_created_at", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(Integer, ForeignKey("forum_threads.id"), nullable=False)
    author_id = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    is_edited = Column(Boolean, nullable=False, default=False)
    is_first_post = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Soft delete (NULL = active, timestamp = deleted)
    deleted_at = Column(DateTime(timezone=True), nullable=True, default=None)

    thread = relationship("Thread", back_populates="posts")
