from sqlalchemy import (
    Column, String, Integer, SmallInteger, Text, DECIMAL, Boolean, TIMESTAMP,
    ForeignKey, CheckConstraint, Computed, FetchedValue, Index,
)
from sqlalchemy.dialects.postgresql import TSVECTOR
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.schema import UniqueConstraint

from app.models.base import Base, BaseModel, TimestampMixin

# 'simple' configuration: lowercased tokens, no stemming, no stop words
COURSE_SEARCH_VECTOR_SQL = (
    "to_tsvector('simple', "
    "coalesce(title, '') || ' ' || "
    "coalesce(short_description, '') || ' ' || "
    "coalesce(full_description, ''))"
)


class Category(BaseModel):
    __tablename__ = "categories"

    name = Column(String(255), nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=True, index=True)

    parent = relationship("Category", remote_side="Category.id", back_populates="children")
    children = relationship("Category", back_populates="parent")


class Course(BaseModel):
    __tablename__ = "courses"

    title = Column(String(255), nullable=False)
    short_description = Column(Text)
    full_description = Column(Text)

    price = Column(DECIMAL(10, 2), nullable=False)
    promo_price = Column(DECIMAL(10, 2), nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    thumbnail = Column(Text)
    view_count = Column(Integer, default=0, nullable=False)
    last_updated = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    is_disabled = Column(Boolean, default=False, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)

    search_vector = Column(TSVECTOR, Computed(COURSE_SEARCH_VECTOR_SQL, persisted=True))
    # unaccent() is not IMMUTABLE, so this one is kept current by a trigger
    search_text_normalized = Column(Text, server_default=FetchedValue(), server_onupdate=FetchedValue())

    __table_args__ = (
        CheckConstraint('price >= 0', name='courses_price_check'),
        CheckConstraint('promo_price IS NULL OR promo_price >= 0', name='courses_promo_price_check'),
        Index('ix_courses_search_vector', 'search_vector', postgresql_using='gin'),
        Index(
            'ix_courses_search_text_trgm', 'search_text_normalized',
            postgresql_using='gin',
            postgresql_ops={'search_text_normalized': 'gin_trgm_ops'},
        ),
        Index('ix_courses_last_updated', 'last_updated'),
    )

    category = relationship("Category")
    instructor = relationship("User", foreign_keys=[instructor_id])
    reviews = relationship("Review", back_populates="course")
    enrollments = relationship("Enrollment", back_populates="course")


class Review(BaseModel, TimestampMixin):
    __tablename__ = "reviews"

    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(SmallInteger, nullable=False)
    comment = Column(Text)

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_review_user_course'),
        CheckConstraint('rating BETWEEN 1 AND 5', name='reviews_rating_check'),
    )

    course = relationship("Course", back_populates="reviews")
    user = relationship("User")


class Enrollment(Base):
    __tablename__ = "enrollments"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True, index=True)
    enrolled_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)

    course = relationship("Course", back_populates="enrollments")
    student = relationship("User")
