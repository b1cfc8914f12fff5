"""Permission-aware search over threads and posts."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..exceptions import ValidationError
from ..repositories import ThreadRepository, PostRepository
from ..schemas.search import SearchRequest, SearchResults, ThreadHit, PostHit
from .access_evaluator import AccessEvaluator
from .query_parser import parse_query

logger = logging.getLogger(__name__)


class SearchService:
    """Runs parsed search queries restricted to categories the caller may view.

    Threads match on their title or opening post; posts match on reply
    content only. Thread and post results are paginated independently and
    each comes with its total match count.
    """

    def __init__(
        self,
        db: Session,
        app_settings: Optional[Settings] = None,
        evaluator: Optional[AccessEvaluator] = None,
    ):
        self.db = db
        self.settings = app_settings or default_settings
        self.evaluator = evaluator or AccessEvaluator(db, app_settings=self.settings)
        self.thread_repo = ThreadRepository(db)
        self.post_repo = PostRepository(db)

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.settings.search_default_limit
        return max(1, min(limit, self.settings.search_max_limit))

    def _visible_category_ids(self, user_id: Optional[str], category_id: Optional[int]) -> List[int]:
        if category_id is not None:
            # A category the caller cannot see behaves like an empty one.
            if self.evaluator.can(user_id, "view", category_id):
                return [category_id]
            return []
        return self.evaluator.accessible_category_ids(user_id)

    def search(
        self,
        query: str,
        user_id: Optional[str] = None,
        search_threads: bool = True,
        search_posts: bool = True,
        category_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> SearchResults:
        """Search threads and/or posts.

        Raises:
            ValidationError: empty or over-long query, both scopes disabled,
                or a negative offset.
            SearchParseError: malformed query syntax.
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query cannot be empty", field="query")
        if len(query) > self.settings.search_max_query_length:
            raise ValidationError(
                f"Search query exceeds {self.settings.search_max_query_length} characters",
                field="query",
            )
        if not search_threads and not search_posts:
            raise ValidationError("Select threads, posts, or both to search", field="scope")
        if offset < 0:
            raise ValidationError("Offset cannot be negative", field="offset")

        limit = self._clamp_limit(limit)
        node = parse_query(query)

        category_ids = self._visible_category_ids(user_id, category_id)
        if not category_ids:
            logger.debug("Search skipped, no visible categories", extra={"user_id": user_id})
            return SearchResults()

        results = SearchResults()
        if search_threads:
            threads, results.thread_count = self.thread_repo.search(node, category_ids, limit, offset)
            results.threads = [ThreadHit.model_validate(t) for t in threads]
        if search_posts:
            posts, results.post_count = self.post_repo.search(node, category_ids, limit, offset)
            results.posts = [PostHit.model_validate(p) for p in posts]

        logger.debug(
            "Search completed",
            extra={
                "user_id": user_id,
                "thread_count": results.thread_count,
                "post_count": results.post_count,
            },
        )
        return results

    def run(self, request: SearchRequest) -> SearchResults:
        """Search using a validated SearchRequest."""
        return self.search(
            request.query,
            user_id=request.user_id,
            search_threads=request.search_threads,
            search_posts=request.search_posts,
            category_id=request.category_id,
            limit=request.limit,
            offset=request.offset,
        )
