"""Rebuild cached thread and category counters from live rows."""

import logging
from typing import Dict

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models import Thread
from ..repositories import CategoryRepository, PostRepository, ThreadRepository

logger = logging.getLogger(__name__)


class StatsService:
    """Recomputes ``post_count``/``thread_count`` caches.

    Only non-deleted rows count, and opening posts are never counted as
    posts. Used by the maintenance CLI to correct drift left by failed
    counter updates.
    """

    def __init__(self, db: Session):
        self.db = db
        self.thread_repo = ThreadRepository(db)
        self.post_repo = PostRepository(db)
        self.category_repo = CategoryRepository(db)

    def rebuild_thread_stats(self, thread_id: int) -> int:
        """Recount one live thread's replies. Returns the new count."""
        self.thread_repo.get_by_id(thread_id)
        count = self.post_repo.count_live_replies(thread_id)
        self.db.execute(
            update(Thread)
            .where(Thread.id == thread_id)
            .values(post_count=count)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return count

    def rebuild_all_thread_stats(self) -> int:
        """Recount replies for every live thread. Returns the number of threads."""
        threads = self.thread_repo.list_live()
        for thread in threads:
            thread.post_count = self.post_repo.count_live_replies(thread.id)
        self.db.commit()
        logger.info("Rebuilt thread stats", extra={"threads": len(threads)})
        return len(threads)

    def rebuild_category_stats(self, category_id: int) -> Dict[str, int]:
        """Recount one category. Returns its new thread and post counts."""
        category = self.category_repo.get_by_id(category_id)
        counts = self._apply_category_counts(
            [category],
            self.thread_repo.live_counts_by_category(),
            self.post_repo.live_reply_counts_by_category(),
        )
        self.db.commit()
        return counts[category_id]

    def rebuild_all_category_stats(self) -> int:
        """Recount every category. Returns the number of categories."""
        categories = self.category_repo.get_all()
        self._apply_category_counts(
            categories,
            self.thread_repo.live_counts_by_category(),
            self.post_repo.live_reply_counts_by_category(),
        )
        self.db.commit()
        logger.info("Rebuilt category stats", extra={"categories": len(categories)})
        return len(categories)

    @staticmethod
    def _apply_category_counts(categories, thread_counts, post_counts) -> Dict[int, Dict[str, int]]:
        applied = {}
        for category in categories:
            category.thread_count = thread_counts.get(category.id, 0)
            category.post_count = post_counts.get(category.id, 0)
            applied[category.id] = {
                "thread_count": category.thread_count,
                "post_count": category.post_count,
            }
        return applied
