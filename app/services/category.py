from typing import List, Optional, Set
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.models.catalog import Category
from app.repositories.category import CategoryRepository, category_repository
from app.schemas.catalog import CategoryMenuItem, CategoryRead
from app.services.base import BaseService

logger = logging.getLogger(__name__)


class CategoryService(BaseService[Category]):
    """Category tree lookups used by catalog filtering and the site menu."""

    def __init__(self, repository: CategoryRepository = category_repository):
        super().__init__(repository)

    def _expand_scope(self, db: Session, category_id: int) -> Set[int]:
        scope = {category_id}
        frontier = [category_id]
        while frontier:
            next_level = []
            for child_id in self.repository.children_of(db, frontier):
                # visited guard: a bad parent pointer must not loop forever
                if child_id not in scope:
                    scope.add(child_id)
                    next_level.append(child_id)
            frontier = next_level
        return scope

    async def expand_category_scope(self, db: Session, category_id: int) -> Set[int]:
        """
        The category itself plus every descendant, walked breadth-first.

        An id with no children (or no row at all) yields just {category_id};
        the caller decides whether a missing category is a 404.
        """
        return await self.run_blocking(self._expand_scope, db, category_id)

    async def get_category(self, db: Session, category_id: int) -> Optional[Category]:
        return await self.get(db, category_id)

    @staticmethod
    def assemble_menu(categories: List[Category]) -> List[CategoryMenuItem]:
        """Group a flat category list into top-level entries with their children, by name."""
        by_parent = {}
        for category in categories:
            by_parent.setdefault(category.parent_id, []).append(category)

        def _by_name(items):
            return sorted(items, key=lambda c: (c.name, c.id))

        return [
            CategoryMenuItem(
                category=CategoryRead.model_validate(top),
                subcategories=[CategoryRead.model_validate(sub) for sub in _by_name(by_parent.get(top.id, []))],
            )
            for top in _by_name(by_parent.get(None, []))
        ]

    def _load_menu(self, db: Session) -> List[CategoryMenuItem]:
        try:
            categories = self.repository.get_all_ordered(db)
        except SQLAlchemyError as e:
            # menu failures degrade to an empty menu
            logger.error(f"Category menu unavailable, rendering empty menu: {e}")
            return []
        return self.assemble_menu(categories)

    async def build_hierarchical_menu(self, db: Session) -> List[CategoryMenuItem]:
        return await self.run_blocking(self._load_menu, db)

category_service = CategoryService()
