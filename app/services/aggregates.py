from typing import Any, Dict, Iterable, List
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import logging

from sqlalchemy.orm import Session

from app.models.catalog import Review
from app.repositories.aggregates import AggregateRepository, aggregate_repository
from app.schemas.catalog import CourseAggregates, RatingAggregate, RatingBucket
from app.services.base import BaseService

logger = logging.getLogger(__name__)

STAR_RATINGS = (5, 4, 3, 2, 1)


def coerce_average(value: Any) -> float:
    """
    Driver value of AVG(rating) -> float with one decimal.

    psycopg2 hands back Decimal (and some drivers text); None means no
    reviews. Every unusable value becomes 0.0 so comparisons stay total.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Unparseable average rating {value!r}, using 0")
        return 0.0
    if not number.is_finite():
        return 0.0
    return float(number.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def coerce_count(value: Any) -> int:
    """Driver value of COUNT(...) -> int, None -> 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, ValueError, OverflowError):
        logger.warning(f"Unparseable count {value!r}, using 0")
        return 0


def build_rating_aggregate(average: Any, count: Any) -> RatingAggregate:
    count = coerce_count(count)
    return RatingAggregate(average=coerce_average(average) if count else 0.0, count=count)


def zero_filled_distribution(rows: Iterable[Any]) -> List[RatingBucket]:
    """Always five buckets, 5 stars down to 1, missing stars counted as 0."""
    counts = {}
    for rating, count in rows:
        counts[int(rating)] = coerce_count(count)
    return [RatingBucket(rating=star, count=counts.get(star, 0)) for star in STAR_RATINGS]


class AggregateService(BaseService[Review]):
    """Rating and enrollment facts per course, always batched per call."""

    def __init__(self, repository: AggregateRepository = aggregate_repository):
        super().__init__(repository)

    def _aggregates_for(self, db: Session, course_ids: List[int]) -> Dict[int, CourseAggregates]:
        result = {course_id: CourseAggregates() for course_id in course_ids}
        for row in self.repository.batch_for(db, course_ids):
            if row.course_id not in result:
                continue
            result[row.course_id] = CourseAggregates(
                rating=build_rating_aggregate(row.average_rating, row.rating_count),
                enrollment_count=coerce_count(row.enrollment_count),
            )
        return result

    async def aggregates_for(self, db: Session, course_ids: Iterable[int]) -> Dict[int, CourseAggregates]:
        """Aggregates for exactly `course_ids` in one query; unknown ids come back zeroed."""
        ids = sorted(set(course_ids))
        return await self.run_blocking(self._aggregates_for, db, ids)

    async def rating_aggregate_for(self, db: Session, course_id: int) -> RatingAggregate:
        aggregates = await self.aggregates_for(db, [course_id])
        return aggregates[course_id].rating

    async def enrollment_count(self, db: Session, course_id: int) -> int:
        aggregates = await self.aggregates_for(db, [course_id])
        return aggregates[course_id].enrollment_count

    async def rating_distribution(self, db: Session, course_id: int) -> List[RatingBucket]:
        rows = await self.run_blocking(self.repository.rating_counts_by_star, db, course_id)
        return zero_filled_distribution(rows)

aggregate_service = AggregateService()
