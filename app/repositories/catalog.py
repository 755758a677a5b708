from typing import Dict, List, Optional, Tuple, Any

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session, Query, aliased
from sqlalchemy.exc import SQLAlchemyError

from app.repositories.base import BaseRepository
from app.repositories.aggregates import AggregateRepository, aggregate_repository
from app.models.catalog import Course, Category
from app.models.user import User
from app.schemas.catalog import CatalogQueryPlan, CatalogFilter, CourseStatusFilter, SortMode
from app.services.search_matcher import SearchMatcher, search_matcher


ParentCategory = aliased(Category, name="parent_category")

# Promo price only counts when it actually undercuts the list price
effective_price_expr = case(
    (and_(Course.promo_price.isnot(None), Course.promo_price < Course.price), Course.promo_price),
    else_=Course.price,
)


class CatalogRepository(BaseRepository[Course]):
    """SQL side of the catalog query: filters, sort, paging and aggregate joins."""

    def __init__(
        self,
        aggregate_repo: AggregateRepository = aggregate_repository,
        matcher: SearchMatcher = search_matcher,
    ):
        super().__init__(Course)
        self.aggregate_repo = aggregate_repo
        self.matcher = matcher

    # =========================================================================
    # QUERY COMPOSITION
    # =========================================================================

    def _base_query(self, db: Session) -> Tuple[Query, Dict[str, Any]]:
        """Course rows joined with category, instructor and per-course aggregates."""
        ratings = self.aggregate_repo.rating_subquery(db)
        enrollments = self.aggregate_repo.enrollment_subquery(db)
        metrics = {
            "average_rating": func.coalesce(ratings.c.average_rating, 0).label("average_rating"),
            "rating_count": func.coalesce(ratings.c.rating_count, 0).label("rating_count"),
            "enrollment_count": func.coalesce(enrollments.c.enrollment_count, 0).label("enrollment_count"),
        }
        query = (
            db.query(
                Course.id,
                Course.title,
                Course.short_description,
                Course.price,
                Course.promo_price,
                Course.thumbnail,
                Course.view_count,
                Course.last_updated,
                Course.is_disabled,
                Course.is_completed,
                Category.name.label("category_name"),
                User.name.label("instructor_name"),
                metrics["average_rating"],
                metrics["rating_count"],
                metrics["enrollment_count"],
            )
            .select_from(Course)
            .join(Category, Course.category_id == Category.id)
            .join(User, Course.instructor_id == User.id)
            .outerjoin(ratings, ratings.c.course_id == Course.id)
            .outerjoin(enrollments, enrollments.c.course_id == Course.id)
        )
        return query, metrics

    def _filter_clause(self, spec: CatalogFilter) -> Optional[Any]:
        if spec.kind == "category":
            return Course.category_id.in_(sorted(spec.category_ids))
        if spec.kind == "status":
            return Course.is_disabled.is_(spec.status == CourseStatusFilter.DISABLED)
        if spec.kind == "text":
            return self.matcher.build_predicate(spec.query)
        if spec.kind == "instructor":
            return Course.instructor_id == spec.instructor_id
        raise ValueError(f"Unsupported catalog filter: {spec.kind}")

    def _apply_filters(self, query: Query, filters: List[CatalogFilter]) -> Query:
        """The one place plan filters become SQL; all filters are ANDed."""
        for spec in filters:
            clause = self._filter_clause(spec)
            if clause is not None:
                query = query.filter(clause)
        return query

    def _order_by(self, sort: SortMode, metrics: Dict[str, Any]) -> List[Any]:
        if sort == SortMode.PRICE_ASC:
            ordering = [effective_price_expr.asc()]
        elif sort == SortMode.PRICE_DESC:
            ordering = [effective_price_expr.desc()]
        elif sort == SortMode.RATING:
            ordering = [metrics["average_rating"].desc().nulls_last(), metrics["rating_count"].desc()]
        elif sort == SortMode.POPULAR:
            ordering = [metrics["enrollment_count"].desc()]
        elif sort == SortMode.MOST_VIEWED:
            ordering = [Course.view_count.desc()]
        else:
            # relevance has no scoring of its own and shares newest's order
            ordering = [Course.last_updated.desc()]
        # stable tie-break so consecutive pages never overlap or skip rows
        return ordering + [Course.id.asc()]

    def build_page_query(self, db: Session, plan: CatalogQueryPlan) -> Query:
        query, metrics = self._base_query(db)
        query = self._apply_filters(query, plan.filters)
        return query.order_by(*self._order_by(plan.sort, metrics)).offset(plan.offset).limit(plan.page_size)

    def build_count_query(self, db: Session, plan: CatalogQueryPlan) -> Query:
        return self._apply_filters(db.query(func.count(Course.id)), plan.filters)

    def build_detail_query(self, db: Session, course_id: int) -> Query:
        query, _ = self._base_query(db)
        return (
            query.add_columns(
                Course.full_description,
                Course.category_id,
                Course.instructor_id,
                ParentCategory.name.label("parent_category_name"),
                User.bio.label("instructor_bio"),
            )
            .outerjoin(ParentCategory, Category.parent_id == ParentCategory.id)
            .filter(Course.id == course_id)
        )

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def fetch_page(self, db: Session, plan: CatalogQueryPlan) -> Tuple[int, List[Any]]:
        """Total for the filtered set plus the rows of the requested page."""
        try:
            total = int(self.build_count_query(db, plan).scalar() or 0)
            rows = self.build_page_query(db, plan).all() if plan.offset < total else []
        except SQLAlchemyError as e:
            raise self.unavailable("querying catalog of", e) from e
        return total, rows

    def fetch_rows(self, db: Session, plan: CatalogQueryPlan) -> List[Any]:
        """Rows of one page without counting (home page strips)."""
        try:
            return self.build_page_query(db, plan).all()
        except SQLAlchemyError as e:
            raise self.unavailable("querying catalog of", e) from e

    def fetch_detail(self, db: Session, course_id: int) -> Optional[Any]:
        try:
            return self.build_detail_query(db, course_id).first()
        except SQLAlchemyError as e:
            raise self.unavailable(f"loading detail id={course_id} of", e) from e

catalog_repository = CatalogRepository()
