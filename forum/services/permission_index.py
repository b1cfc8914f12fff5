"""Category permission lookups.

A category with no permission rows at all is public. Otherwise a role may
see it only through a row with ``can_view``. Every method here issues a
single query regardless of how many categories are involved.
"""

from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy.orm import Session

from ..models import Category, CategoryPermission
from ..repositories import CategoryPermissionRepository


class CategoryPermissionIndex:
    """Read-side view of the (category, role) permission table."""

    def __init__(self, db: Session):
        self.db = db
        self.perm_repo = CategoryPermissionRepository(db)

    def permissions_for(self, category_ids: Sequence[int]) -> Dict[int, List[Tuple[int, bool]]]:
        """Map each requested category id to its ``(role_id, can_view)`` pairs.

        Categories without rows map to an empty list, which means public.
        """
        index: Dict[int, List[Tuple[int, bool]]] = {cid: [] for cid in category_ids}
        for row in self.perm_repo.rows_for_categories(category_ids):
            index.setdefault(row.category_id, []).append((row.role_id, bool(row.can_view)))
        return index

    def rows_for_category(self, category_id: int) -> List[CategoryPermission]:
        """Every row for one category, whichever role it belongs to."""
        return self.perm_repo.rows_for_categories([category_id])

    def filter_visible(self, categories: Iterable[Category], user_role_ids: Iterable[int]) -> List[Category]:
        """Keep the categories the holder of *user_role_ids* may view.

        Order of *categories* is preserved. The admin bypass is not applied
        here; callers that know the user is an admin skip the filter.
        """
        categories = list(categories)
        held = set(user_role_ids)
        index = self.permissions_for([c.id for c in categories])

        visible = []
        for category in categories:
            rows = index.get(category.id, [])
            if not rows or any(can_view and role_id in held for role_id, can_view in rows):
                visible.append(category)
        return visible
