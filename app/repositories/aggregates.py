from typing import Iterable, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.repositories.base import BaseRepository
from app.models.catalog import Course, Review, Enrollment


class AggregateRepository(BaseRepository[Review]):
    """
    Grouped rating/enrollment facts per course.

    The two subqueries are shared with the catalog page query so a page and
    its aggregates come back in one round trip.
    """

    def __init__(self):
        super().__init__(Review)

    def rating_subquery(self, db: Session, course_ids: Optional[Iterable[int]] = None):
        query = db.query(
            Review.course_id.label("course_id"),
            func.avg(Review.rating).label("average_rating"),
            func.count(Review.id).label("rating_count"),
        )
        if course_ids is not None:
            query = query.filter(Review.course_id.in_(list(course_ids)))
        return query.group_by(Review.course_id).subquery("ratings")

    def enrollment_subquery(self, db: Session, course_ids: Optional[Iterable[int]] = None):
        query = db.query(
            Enrollment.course_id.label("course_id"),
            func.count(Enrollment.user_id).label("enrollment_count"),
        )
        if course_ids is not None:
            query = query.filter(Enrollment.course_id.in_(list(course_ids)))
        return query.group_by(Enrollment.course_id).subquery("enrollments")

    def build_batch_query(self, db: Session, course_ids: List[int]):
        ratings = self.rating_subquery(db, course_ids)
        enrollments = self.enrollment_subquery(db, course_ids)
        return (
            db.query(
                Course.id.label("course_id"),
                ratings.c.average_rating,
                ratings.c.rating_count,
                enrollments.c.enrollment_count,
            )
            .select_from(Course)
            .outerjoin(ratings, ratings.c.course_id == Course.id)
            .outerjoin(enrollments, enrollments.c.course_id == Course.id)
            .filter(Course.id.in_(course_ids))
        )

    def batch_for(self, db: Session, course_ids: List[int]) -> List:
        """Raw aggregate rows for exactly `course_ids`, one statement."""
        if not course_ids:
            return []
        try:
            return self.build_batch_query(db, course_ids).all()
        except SQLAlchemyError as e:
            raise self.unavailable("aggregating", e) from e

    def rating_counts_by_star(self, db: Session, course_id: int) -> List:
        try:
            return (
                db.query(Review.rating, func.count(Review.id).label("count"))
                .filter(Review.course_id == course_id)
                .group_by(Review.rating)
                .order_by(Review.rating.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self.unavailable("loading rating distribution for", e) from e

aggregate_repository = AggregateRepository()
