from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Union, Literal, Any, Annotated
from datetime import datetime
import enum


class SortMode(str, enum.Enum):
    RELEVANCE = "relevance"
    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING = "rating"
    POPULAR = "popular"
    MOST_VIEWED = "most_viewed"


class CourseStatusFilter(str, enum.Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


def coerce_positive_int(value: Any, default: Optional[int]) -> Optional[int]:
    """Parse caller-supplied paging input; anything unusable becomes `default`."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


# --- Requests ---

class CourseFilters(BaseModel):
    """Non-text browsing input (category listing, admin table, home page)."""
    category_id: Optional[int] = None
    status: Optional[CourseStatusFilter] = None
    sort: SortMode = SortMode.NEWEST
    page: int = 1
    page_size: Optional[int] = Field(None, description="Falls back to the call site default")

    @field_validator("category_id", mode="before")
    @classmethod
    def _category_id(cls, v):
        return coerce_positive_int(v, None)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v):
        if isinstance(v, CourseStatusFilter):
            return v
        try:
            return CourseStatusFilter(str(v).strip().lower()) if v else None
        except ValueError:
            return None

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, v):
        if isinstance(v, SortMode):
            return v
        if v is None or str(v).strip() == "":
            return cls.model_fields["sort"].default
        try:
            return SortMode(str(v).strip().lower())
        except ValueError:
            # unknown keys fall back to newest
            return SortMode.NEWEST

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, v):
        return coerce_positive_int(v, 1)

    @field_validator("page_size", mode="before")
    @classmethod
    def _page_size(cls, v):
        return coerce_positive_int(v, None)


class SearchRequest(CourseFilters):
    query: str = ""
    sort: SortMode = SortMode.RELEVANCE

    @field_validator("query", mode="before")
    @classmethod
    def _query(cls, v):
        return "" if v is None else str(v)

    @property
    def has_text(self) -> bool:
        return bool(self.query.strip())


# --- Query plan ---
# Each filter is one tagged variant, turned into SQL by CatalogRepository._apply_filters.

class CategoryScope(BaseModel):
    kind: Literal["category"] = "category"
    category_ids: List[int]


class StatusScope(BaseModel):
    kind: Literal["status"] = "status"
    status: CourseStatusFilter


class TextMatch(BaseModel):
    kind: Literal["text"] = "text"
    query: str


class InstructorScope(BaseModel):
    kind: Literal["instructor"] = "instructor"
    instructor_id: int


CatalogFilter = Annotated[
    Union[CategoryScope, StatusScope, TextMatch, InstructorScope],
    Field(discriminator="kind"),
]


class CatalogQueryPlan(BaseModel):
    filters: List[CatalogFilter] = Field(default_factory=list)
    sort: SortMode = SortMode.NEWEST
    page: int = Field(1, ge=1)
    page_size: int = Field(..., ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


# --- Aggregates ---

class RatingAggregate(BaseModel):
    average: float = 0.0
    count: int = 0


class RatingBucket(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    count: int = 0


class CourseAggregates(BaseModel):
    rating: RatingAggregate = Field(default_factory=RatingAggregate)
    enrollment_count: int = 0


# --- Responses ---

class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class CourseSummary(BaseModel):
    id: int
    title: str
    short_description: Optional[str] = None
    price: float
    promo_price: Optional[float] = None
    effective_price: float
    discount_percent: Optional[int] = None
    thumbnail: Optional[str] = None
    category_name: Optional[str] = None
    instructor_name: Optional[str] = None
    average_rating: float = 0.0
    rating_count: int = 0
    enrollment_count: int = 0
    view_count: int = 0
    last_updated: Optional[datetime] = None
    is_disabled: bool = False
    is_completed: bool = False
    is_bestseller: bool = False
    is_new: bool = False


class ResultPage(BaseModel):
    items: List[CourseSummary]
    pagination: Pagination


class CourseDetail(CourseSummary):
    full_description: Optional[str] = None
    category_id: int
    parent_category_name: Optional[str] = None
    instructor_id: int
    instructor_bio: Optional[str] = None
    rating_distribution: List[RatingBucket] = Field(default_factory=list)


class CategoryRead(BaseModel):
    id: int
    name: str
    parent_id: Optional[int] = None

    model_config = {'from_attributes': True}


class CategoryMenuItem(BaseModel):
    category: CategoryRead
    subcategories: List[CategoryRead] = Field(default_factory=list)


class ReviewRead(BaseModel):
    id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_id: int
    user_name: Optional[str] = None
    avatar: Optional[str] = None


class ReviewPage(BaseModel):
    items: List[ReviewRead]
    pagination: Pagination


class RatingSummary(BaseModel):
    course_id: int
    rating: RatingAggregate
    distribution: List[RatingBucket]
    enrollment_count: int = 0
