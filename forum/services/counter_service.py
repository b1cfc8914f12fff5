"""Denormalized counter maintenance.

Thread and category counts are caches. They are adjusted with a single
``UPDATE ... SET n = n + :delta`` statement so concurrent writers never lose
increments, and each adjustment commits on its own. Callers invoke these
after committing their primary write: a failed counter update is logged and
swallowed, never undoing the post or thread it describes. StatsService can
rebuild any counter that drifted.
"""

import logging

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Category, Thread

logger = logging.getLogger(__name__)


class CounterService:
    """Atomic increments and decrements of cached counts."""

    def __init__(self, db: Session):
        self.db = db

    def _apply(self, model, row_id: int, column_name: str, delta: int) -> bool:
        column = getattr(model, column_name)
        # Decrements never take a counter below zero.
        new_value = case((column + delta < 0, 0), else_=column + delta)
        try:
            self.db.execute(
                update(model)
                .where(model.id == row_id)
                .values({column_name: new_value})
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Counter update failed",
                extra={
                    "table": model.__tablename__,
                    "row_id": row_id,
                    "column": column_name,
                    "delta": delta,
                    "error": str(e),
                },
            )
            return False

    def adjust_thread_posts(self, thread_id: int, delta: int) -> bool:
        return self._apply(Thread, thread_id, "post_count", delta)

    def adjust_category_posts(self, category_id: int, delta: int) -> bool:
        return self._apply(Category, category_id, "post_count", delta)

    def adjust_category_threads(self, category_id: int, delta: int) -> bool:
        return self._apply(Category, category_id, "thread_count", delta)
