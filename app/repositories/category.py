from typing import Iterable, List
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.repositories.base import BaseRepository
from app.models.catalog import Category


class CategoryRepository(BaseRepository[Category]):
    def __init__(self):
        super().__init__(Category)

    def children_of(self, db: Session, parent_ids: Iterable[int]) -> List[int]:
        """Ids of the direct children of any of `parent_ids` (one query per tree level)."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return []
        try:
            rows = db.query(Category.id).filter(Category.parent_id.in_(parent_ids)).all()
        except SQLAlchemyError as e:
            raise self.unavailable("loading children of", e) from e
        return [row[0] for row in rows]

    def get_all_ordered(self, db: Session) -> List[Category]:
        """Every category, alphabetical, for building the menu."""
        return db.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()

category_repository = CategoryRepository()
