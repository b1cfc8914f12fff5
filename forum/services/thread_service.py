"""Thread and post lifecycle.

Each public method is one complete operation: check permissions, write the
rows, commit, then adjust the cached counters. Counter failures never undo
the primary write (see CounterService).
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.config import Settings
from ..exceptions import (
    CategoryNotFoundError,
    ForbiddenError,
    PostNotFoundError,
    ThreadNotFoundError,
    ValidationError,
)
from ..models import Post, Thread
from ..repositories import PostRepository, ThreadRepository
from .access_evaluator import AccessEvaluator
from .counter_service import CounterService

logger = logging.getLogger(__name__)

# Threads whose title slugifies to nothing still need a slug.
_FALLBACK_SLUG = "thread"
_MAX_SLUG_LENGTH = 200


def slugify(title: str) -> str:
    """Lowercase, ASCII-friendly slug for *title*."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:_MAX_SLUG_LENGTH].rstrip("-") or _FALLBACK_SLUG


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field.capitalize()} cannot be empty", field=field)
    return value


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise ForbiddenError("Sign in to post")
    return user_id


class ThreadService:
    """Creates and deletes threads and posts on behalf of a user."""

    def __init__(
        self,
        db: Session,
        app_settings: Optional[Settings] = None,
        evaluator: Optional[AccessEvaluator] = None,
        counters: Optional[CounterService] = None,
    ):
        self.db = db
        self.evaluator = evaluator or AccessEvaluator(db, app_settings=app_settings)
        self.counters = counters or CounterService(db)
        self.thread_repo = ThreadRepository(db)
        self.post_repo = PostRepository(db)

    def _unique_slug(self, title: str) -> str:
        base = slugify(title)
        slug = base
        suffix = 2
        while self.thread_repo.get_by_slug(slug) is not None:
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def _get_visible_thread(self, user_id: Optional[str], thread_id: int) -> Thread:
        """Load a live thread the caller may see, or raise ThreadNotFoundError."""
        thread = self.thread_repo.get_by_id(thread_id)
        try:
            self.evaluator.ensure_can_view(user_id, thread.category_id)
        except CategoryNotFoundError:
            raise ThreadNotFoundError(thread_id) from None
        if thread.is_hidden and not self.evaluator.can(user_id, "moderate", thread.category_id):
            raise ThreadNotFoundError(thread_id)
        return thread

    def _ensure_author_or_moderator(self, user_id: str, author_id: str, category_id: int) -> None:
        if user_id == author_id:
            return
        if not self.evaluator.can(user_id, "moderate", category_id):
            raise ForbiddenError("Only the author or a moderator can delete this")

    def create_thread(self, user_id: Optional[str], category_id: int, title: str, content: str) -> Thread:
        """Create a thread with its opening post.

        Raises:
            CategoryNotFoundError: category missing or not visible.
            ForbiddenError: anonymous caller, or no ``post`` permission.
            ValidationError: blank title or content.
        """
        user_id = _require_user(user_id)
        title = _require_text(title, "title")
        content = _require_text(content, "content")
        self.evaluator.ensure_can(user_id, "post", category_id)

        thread = self.thread_repo.add(Thread(
            category_id=category_id,
            author_id=user_id,
            title=title,
            slug=self._unique_slug(title),
        ))
        first_post = self.post_repo.add(Post(
            thread_id=thread.id,
            author_id=user_id,
            content=content,
            is_first_post=True,
        ))
        thread.last_post_id = first_post.id
        self.db.commit()
        self.db.refresh(thread)

        logger.info(
            "Thread created",
            extra={"thread_id": thread.id, "category_id": category_id, "author_id": user_id},
        )
        self.counters.adjust_category_threads(category_id, 1)
        return thread

    def create_post(self, user_id: Optional[str], thread_id: int, content: str) -> Post:
        """Reply to a thread.

        Locked threads accept replies only from moderators.

        Raises:
            ThreadNotFoundError: thread missing, deleted or not visible.
            ForbiddenError: anonymous caller, no ``reply`` permission, or the
                thread is locked.
            ValidationError: blank content.
        """
        user_id = _require_user(user_id)
        content = _require_text(content, "content")
        thread = self._get_visible_thread(user_id, thread_id)
        category_id = thread.category_id

        if not self.evaluator.can(user_id, "reply", category_id):
            raise ForbiddenError("Not allowed to reply in this category")
        if thread.is_locked and not self.evaluator.can(user_id, "moderate", category_id):
            raise ForbiddenError("Thread is locked")

        post = self.post_repo.add(Post(thread_id=thread_id, author_id=user_id, content=content))
        self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(last_post_id=post.id)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(post)

        logger.info("Post created", extra={"post_id": post.id, "thread_id": thread_id, "author_id": user_id})
        self.counters.adjust_thread_posts(thread_id, 1)
        self.counters.adjust_category_posts(category_id, 1)
        return post

    def delete_post(self, user_id: Optional[str], post_id: int) -> None:
        """Soft-delete a reply. Opening posts go away with their thread.

        Raises:
            PostNotFoundError: post missing or already deleted.
            ThreadNotFoundError: its thread is not visible.
            ValidationError: the post is the thread's opening post.
            ForbiddenError: caller is neither the author nor a moderator.
        """
        user_id = _require_user(user_id)
        post = self.post_repo.get_by_id(post_id)
        thread = self._get_visible_thread(user_id, post.thread_id)
        category_id = thread.category_id

        if post.is_first_post:
            raise ValidationError("The opening post can only be removed by deleting the thread", field="post_id")
        self._ensure_author_or_moderator(user_id, post.author_id, category_id)

        # A concurrent delete may have won since the read above.
        if not self.post_repo.soft_delete(post_id, datetime.now(timezone.utc)):
            self.db.rollback()
            raise PostNotFoundError(post_id)
        self.db.commit()

        logger.info("Post deleted", extra={"post_id": post_id, "thread_id": thread.id, "deleted_by": user_id})
        self.counters.adjust_thread_posts(thread.id, -1)
        self.counters.adjust_category_posts(category_id, -1)

    def delete_thread(self, user_id: Optional[str], thread_id: int) -> None:
        """Soft-delete a thread and its opening post.

        Raises:
            ThreadNotFoundError: thread missing, deleted or not visible.
            ForbiddenError: caller is neither the author nor a moderator.
        """
        user_id = _require_user(user_id)
        thread = self._get_visible_thread(user_id, thread_id)
        category_id = thread.category_id
        self._ensure_author_or_moderator(user_id, thread.author_id, category_id)

        replies = self.post_repo.count_live_replies(thread_id)
        now = datetime.now(timezone.utc)
        thread.deleted_at = now
        first_post = self.thread_repo.first_post(thread_id)
        if first_post is not None:
            first_post.deleted_at = now
        self.db.commit()

        logger.info(
            "Thread deleted",
            extra={"thread_id": thread_id, "category_id": category_id, "deleted_by": user_id},
        )
        self.counters.adjust_category_threads(category_id, -1)
        if replies:
            self.counters.adjust_category_posts(category_id, -replies)
