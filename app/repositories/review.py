from typing import List, Tuple, Any
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.repositories.base import BaseRepository
from app.models.catalog import Review
from app.models.user import User


class ReviewRepository(BaseRepository[Review]):
    def __init__(self):
        super().__init__(Review)

    def page_for_course(self, db: Session, course_id: int, offset: int, limit: int) -> Tuple[int, List[Any]]:
        """Newest reviews of a course with the reviewer's display data."""
        try:
            total = db.query(func.count(Review.id)).filter(Review.course_id == course_id).scalar() or 0
            rows = (
                db.query(
                    Review.id,
                    Review.rating,
                    Review.comment,
                    Review.created_at,
                    Review.updated_at,
                    User.id.label("user_id"),
                    User.name.label("user_name"),
                    User.avatar.label("avatar"),
                )
                .join(User, Review.user_id == User.id)
                .filter(Review.course_id == course_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            raise self.unavailable(f"listing course_id={course_id}", e) from e
        return int(total), rows

review_repository = ReviewRepository()
