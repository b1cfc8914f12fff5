"""Thread and post data access.

Owns the soft-delete filtering for both tables: every read goes through
_base_query(), so callers never see rows with ``deleted_at`` set unless they
ask for them explicitly.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from sqlalchemy import and_, func, update
from sqlalchemy.orm import Query, aliased

from ..models import Thread, Post
from ..exceptions import ThreadNotFoundError, PostNotFoundError
from .base import BaseRepository

if TYPE_CHECKING:
    from ..services.query_parser import SearchNode


class ThreadRepository(BaseRepository[Thread]):
    """Repository for threads. Soft-deleted threads are excluded by default."""

    model_class = Thread
    not_found_error = ThreadNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(Thread).filter(Thread.deleted_at.is_(None))

    def get_by_slug(self, slug: str) -> Optional[Thread]:
        return self.db.query(Thread).filter(Thread.slug == slug).first()

    def first_post(self, thread_id: int) -> Optional[Post]:
        return self.db.query(Post).filter(
            Post.thread_id == thread_id,
            Post.is_first_post.is_(True),
        ).first()

    def list_live(self) -> List[Thread]:
        return self._base_query().order_by(Thread.id).all()

    def live_counts_by_category(self) -> Dict[int, int]:
        """Non-deleted thread count per category."""
        rows = (
            self.db.query(Thread.category_id, func.count(Thread.id))
            .filter(Thread.deleted_at.is_(None))
            .group_by(Thread.category_id)
            .all()
        )
        return {category_id: count for category_id, count in rows}

    def search(
        self,
        node: "SearchNode",
        category_ids: Sequence[int],
        limit: int,
        offset: int,
    ) -> Tuple[List[Thread], int]:
        """Threads whose title or opening post matches *node*.

        Hidden and deleted threads are never returned. Returns the requested
        page and the total number of matches.
        """
        first_post = aliased(Post)
        query = (
            self._base_query()
            .outerjoin(
                first_post,
                and_(
                    first_post.thread_id == Thread.id,
                    first_post.is_first_post.is_(True),
                    first_post.deleted_at.is_(None),
                ),
            )
            .filter(
                Thread.category_id.in_(list(category_ids)),
                Thread.is_hidden.is_(False),
                node.to_sql(Thread.title) | node.to_sql(first_post.content),
            )
        )
        total = query.with_entities(func.count(func.distinct(Thread.id))).scalar() or 0
        rows = (
            query.order_by(Thread.created_at.desc(), Thread.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return rows, total


class PostRepository(BaseRepository[Post]):
    """Repository for posts. Soft-deleted posts are excluded by default."""

    model_class = Post
    not_found_error = PostNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(Post).filter(Post.deleted_at.is_(None))

    def count_live_replies(self, thread_id: int) -> int:
        return (
            self.db.query(func.count(Post.id))
            .filter(
                Post.thread_id == thread_id,
                Post.is_first_post.is_(False),
                Post.deleted_at.is_(None),
            )
            .scalar()
            or 0
        )

    def soft_delete(self, post_id: int, when: datetime) -> bool:
        """Mark a live post deleted. False if it was already gone."""
        result = self.db.execute(
            update(Post)
            .where(Post.id == post_id, Post.deleted_at.is_(None))
            .values(deleted_at=when)
        )
        return result.rowcount == 1

    def live_reply_counts_by_category(self) -> Dict[int, int]:
        """Non-deleted reply count per category, ignoring deleted threads."""
        rows = (
            self.db.query(Thread.category_id, func.count(Post.id))
            .join(Thread, Post.thread_id == Thread.id)
            .filter(
                Post.deleted_at.is_(None),
                Post.is_first_post.is_(False),
                Thread.deleted_at.is_(None),
            )
            .group_by(Thread.category_id)
            .all()
        )
        return {category_id: count for category_id, count in rows}

    def search(
        self,
        node: "SearchNode",
        category_ids: Sequence[int],
        limit: int,
        offset: int,
    ) -> Tuple[List[Post], int]:
        """Reply posts whose content matches *node*.

        Opening posts are excluded (they are searched as part of their
        thread), as are deleted posts and posts in deleted or hidden threads.
        """
        query = (
            self._base_query()
            .join(Thread, Post.thread_id == Thread.id)
            .filter(
                Post.is_first_post.is_(False),
                Thread.deleted_at.is_(None),
                Thread.is_hidden.is_(False),
                Thread.category_id.in_(list(category_ids)),
                node.to_sql(Post.content),
            )
        )
        total = query.with_entities(func.count(Post.id)).scalar() or 0
        rows = (
            query.order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return rows, total
