"""Category, category header and category permission data access."""

from typing import List, Optional, Sequence

from ..models import CatHeader, Category, CategoryPermission
from ..exceptions import CategoryNotFoundError
from .base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    """Data access for categories and their headers."""

    model_class = Category
    not_found_error = CategoryNotFoundError

    def get_all(self) -> List[Category]:
        return self.db.query(Category).order_by(Category.sort_order, Category.id).all()

    def get_by_slug(self, slug: str) -> Optional[Category]:
        return self.db.query(Category).filter(Category.slug == slug).first()

    def first_header(self) -> Optional[CatHeader]:
        return self.db.query(CatHeader).order_by(CatHeader.sort_order, CatHeader.id).first()


class CategoryPermissionRepository:
    """Data access for (category, role) permission rows."""

    def __init__(self, db):
        self.db = db

    def rows_for_categories(self, category_ids: Sequence[int]) -> List[CategoryPermission]:
        """Every permission row for the given categories, in one query."""
        if not category_ids:
            return []
        return (
            self.db.query(CategoryPermission)
            .filter(CategoryPermission.category_id.in_(list(category_ids)))
            .order_by(CategoryPermission.category_id, CategoryPermission.role_id)
            .all()
        )

    def rows_for_role(self, role_id: int) -> List[CategoryPermission]:
        return (
            self.db.query(CategoryPermission)
            .filter(CategoryPermission.role_id == role_id)
            .order_by(CategoryPermission.id)
            .all()
        )

    def find(self, category_id: int, role_id: int) -> Optional[CategoryPermission]:
        return self.db.query(CategoryPermission).filter(
            CategoryPermission.category_id == category_id,
            CategoryPermission.role_id == role_id,
        ).first()

    def create(self, category_id: int, role_id: int, **flags: bool) -> CategoryPermission:
        row = CategoryPermission(category_id=category_id, role_id=role_id, **flags)
        self.db.add(row)
        self.db.flush()
        return row

    def delete_for_role(self, role_id: int) -> int:
        count = self.db.query(CategoryPermission).filter(
            CategoryPermission.role_id == role_id
        ).delete(synchronize_session=False)
        self.db.flush()
        return count

