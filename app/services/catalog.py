from typing import Any, Callable, List, Optional, Sequence
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
import logging
import math

from sqlalchemy.orm import Session

from app.core.config import settings
from app.repositories.catalog import CatalogRepository, catalog_repository
from app.repositories.review import ReviewRepository, review_repository
from app.schemas.catalog import (
    CatalogFilter, CatalogQueryPlan, CategoryScope, CourseDetail, CourseFilters,
    CourseStatusFilter, CourseSummary, InstructorScope, Pagination, ResultPage,
    RatingSummary, ReviewPage, ReviewRead, SearchRequest, SortMode, StatusScope, TextMatch,
    coerce_positive_int,
)
from app.services.aggregates import AggregateService, aggregate_service, coerce_average, coerce_count
from app.services.base import BaseService
from app.services.category import CategoryService, category_service

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =========================================================================
# DERIVED FIELDS
# =========================================================================

def effective_price(price: Any, promo_price: Any) -> Decimal:
    """Promo price when present and below list price, otherwise list price."""
    price = Decimal(str(price))
    if promo_price is None:
        return price
    promo = Decimal(str(promo_price))
    return promo if promo < price else price


def discount_percent(price: Any, promo_price: Any) -> Optional[int]:
    price = Decimal(str(price))
    effective = effective_price(price, promo_price)
    if price <= 0 or effective >= price:
        return None
    return int(((price - effective) / price * 100).to_integral_value(rounding=ROUND_HALF_UP))


def is_bestseller(enrollment_count: int, threshold: int = None) -> bool:
    threshold = settings.BESTSELLER_ENROLLMENT_THRESHOLD if threshold is None else threshold
    return enrollment_count > threshold


def is_new(last_updated: Optional[datetime], now: datetime, window_days: int = None) -> bool:
    if last_updated is None:
        return False
    window_days = settings.NEW_COURSE_WINDOW_DAYS if window_days is None else window_days
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    return last_updated > now - timedelta(days=window_days)


def total_pages_for(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size > 0 else 0


class CatalogService(BaseService):
    """
    Catalog query builder.

    Turns a search/browse request into a typed query plan, runs it through
    the catalog repository and decorates the returned page (numeric
    normalization, bestseller/new tags, effective price).
    """

    def __init__(
        self,
        repository: CatalogRepository = catalog_repository,
        category_svc: CategoryService = category_service,
        aggregate_svc: AggregateService = aggregate_service,
        review_repo: ReviewRepository = review_repository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(repository)
        self.category_service = category_svc
        self.aggregate_service = aggregate_svc
        self.review_repo = review_repo
        self.clock = clock

    # =========================================================================
    # PLANNING
    # =========================================================================

    @staticmethod
    def resolve_page_size(requested: Optional[int], default: int) -> int:
        size = coerce_positive_int(requested, None) or default
        return min(size, settings.MAX_PAGE_SIZE)

    async def build_query_plan(
        self,
        db: Session,
        request: SearchRequest,
        default_page_size: int,
        extra_filters: Sequence[CatalogFilter] = (),
    ) -> CatalogQueryPlan:
        filters: List[CatalogFilter] = []
        if request.category_id is not None:
            scope = await self.category_service.expand_category_scope(db, request.category_id)
            filters.append(CategoryScope(category_ids=sorted(scope)))
        if request.status is not None:
            filters.append(StatusScope(status=request.status))
        if request.has_text:
            filters.append(TextMatch(query=request.query))
        filters.extend(extra_filters)

        return CatalogQueryPlan(
            filters=filters,
            sort=request.sort,
            page=request.page,
            page_size=self.resolve_page_size(request.page_size, default_page_size),
        )

    # =========================================================================
    # RESULT SHAPING
    # =========================================================================

    def to_summary(self, row: Any, now: datetime) -> CourseSummary:
        enrollment_count = coerce_count(row.enrollment_count)
        rating_count = coerce_count(row.rating_count)
        return CourseSummary(
            id=row.id,
            title=row.title,
            short_description=row.short_description,
            price=float(row.price),
            promo_price=float(row.promo_price) if row.promo_price is not None else None,
            effective_price=float(effective_price(row.price, row.promo_price)),
            discount_percent=discount_percent(row.price, row.promo_price),
            thumbnail=row.thumbnail,
            category_name=row.category_name,
            instructor_name=row.instructor_name,
            average_rating=coerce_average(row.average_rating) if rating_count else 0.0,
            rating_count=rating_count,
            enrollment_count=enrollment_count,
            view_count=coerce_count(row.view_count),
            last_updated=row.last_updated,
            is_disabled=bool(row.is_disabled),
            is_completed=bool(row.is_completed),
            is_bestseller=is_bestseller(enrollment_count),
            is_new=is_new(row.last_updated, now),
        )

    def _page(self, rows: List[Any], plan: CatalogQueryPlan, total: int) -> ResultPage:
        now = self.clock()
        return ResultPage(
            items=[self.to_summary(row, now) for row in rows],
            pagination=Pagination(
                page=plan.page,
                page_size=plan.page_size,
                total=total,
                total_pages=total_pages_for(total, plan.page_size),
            ),
        )

    # =========================================================================
    # CATALOG QUERIES
    # =========================================================================

    async def run_plan(self, db: Session, plan: CatalogQueryPlan) -> ResultPage:
        logger.debug(f"Catalog plan: {plan.model_dump()}")
        total, rows = await self.run_blocking(self.repository.fetch_page, db, plan)
        return self._page(rows, plan, total)

    async def query_catalog(
        self,
        db: Session,
        request: SearchRequest,
        default_page_size: int = None,
    ) -> ResultPage:
        """Filter, sort and paginate the catalog for one request."""
        default_page_size = default_page_size or settings.DEFAULT_PAGE_SIZE
        plan = await self.build_query_plan(db, request, default_page_size)
        return await self.run_plan(db, plan)

    async def list_courses(self, db: Session, filters: CourseFilters) -> ResultPage:
        request = SearchRequest(**filters.model_dump())
        return await self.query_catalog(db, request, settings.DEFAULT_PAGE_SIZE)

    async def search_courses(self, db: Session, request: SearchRequest) -> ResultPage:
        return await self.query_catalog(db, request, settings.SEARCH_PAGE_SIZE)

    async def courses_by_instructor(
        self,
        db: Session,
        instructor_id: int,
        page: Any = 1,
        page_size: Any = None,
    ) -> ResultPage:
        request = SearchRequest(sort=SortMode.NEWEST, page=page, page_size=page_size)
        plan = await self.build_query_plan(
            db, request, settings.DEFAULT_PAGE_SIZE,
            extra_filters=[InstructorScope(instructor_id=instructor_id)],
        )
        return await self.run_plan(db, plan)

    async def _top(self, db: Session, sort: SortMode, limit: Optional[int]) -> List[CourseSummary]:
        plan = CatalogQueryPlan(
            filters=[StatusScope(status=CourseStatusFilter.ACTIVE)],
            sort=sort,
            page=1,
            page_size=self.resolve_page_size(limit, settings.TOP_COURSES_LIMIT),
        )
        rows = await self.run_blocking(self.repository.fetch_rows, db, plan)
        now = self.clock()
        return [self.to_summary(row, now) for row in rows]

    async def top_viewed(self, db: Session, limit: int = None) -> List[CourseSummary]:
        return await self._top(db, SortMode.MOST_VIEWED, limit)

    async def top_newest(self, db: Session, limit: int = None) -> List[CourseSummary]:
        return await self._top(db, SortMode.NEWEST, limit)

    # =========================================================================
    # COURSE PAGE
    # =========================================================================

    async def is_listed(self, db: Session, course_id: int) -> bool:
        """True when the course exists and is not disabled."""
        course = await self.get(db, course_id)
        return course is not None and not course.is_disabled

    async def course_detail(self, db: Session, course_id: int) -> Optional[CourseDetail]:
        row = await self.run_blocking(self.repository.fetch_detail, db, course_id)
        if row is None:
            return None
        summary = self.to_summary(row, self.clock())
        distribution = await self.aggregate_service.rating_distribution(db, course_id)
        return CourseDetail(
            **summary.model_dump(),
            full_description=row.full_description,
            category_id=row.category_id,
            parent_category_name=row.parent_category_name,
            instructor_id=row.instructor_id,
            instructor_bio=row.instructor_bio,
            rating_distribution=distribution,
        )

    async def rating_summary(self, db: Session, course_id: int) -> RatingSummary:
        aggregates = await self.aggregate_service.aggregates_for(db, [course_id])
        distribution = await self.aggregate_service.rating_distribution(db, course_id)
        return RatingSummary(
            course_id=course_id,
            rating=aggregates[course_id].rating,
            distribution=distribution,
            enrollment_count=aggregates[course_id].enrollment_count,
        )

    async def course_reviews(
        self,
        db: Session,
        course_id: int,
        page: Any = 1,
        page_size: Any = None,
    ) -> ReviewPage:
        page = coerce_positive_int(page, 1)
        page_size = self.resolve_page_size(page_size, settings.REVIEW_PAGE_SIZE)
        total, rows = await self.run_blocking(
            self.review_repo.page_for_course, db, course_id, (page - 1) * page_size, page_size
        )
        return ReviewPage(
            items=[
                ReviewRead(
                    id=row.id,
                    rating=row.rating,
                    comment=row.comment,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                    user_id=row.user_id,
                    user_name=row.user_name,
                    avatar=row.avatar,
                )
                for row in rows
            ],
            pagination=Pagination(
                page=page,
                page_size=page_size,
                total=total,
                total_pages=total_pages_for(total, page_size),
            ),
        )

catalog_service = CatalogService()
