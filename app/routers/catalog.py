from fastapi import APIRouter, Depends, HTTPException, Query, Path, status
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.config import settings
from app.core.database import get_db
from app.dependencies import PageParams, get_catalog_service
from app.schemas.catalog import (
    CourseDetail, CourseFilters, CourseStatusFilter, CourseSummary, RatingSummary,
    ResultPage, ReviewPage, SearchRequest, coerce_positive_int,
)
from app.services.catalog import CatalogService

router = APIRouter(prefix="/courses", tags=["Courses"])
instructor_router = APIRouter(prefix="/instructors", tags=["Instructors"])
admin_router = APIRouter(prefix="/admin/courses", tags=["Admin Courses"])


async def _require_listed(db: Session, course_id: int, service: CatalogService) -> None:
    if not await service.is_listed(db, course_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")


@router.get("", response_model=ResultPage)
async def list_courses(
    category_id: Optional[str] = Query(None, description="Category (subcategories included)"),
    sort: Optional[str] = Query(None, description="newest | price_asc | price_desc | rating | popular"),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Browse active courses"""
    filters = CourseFilters(
        category_id=category_id,
        status=CourseStatusFilter.ACTIVE,
        sort=sort,
        page=paging.page,
        page_size=paging.page_size,
    )
    return await service.list_courses(db, filters)

@router.get("/search", response_model=ResultPage)
async def search_courses(
    q: Optional[str] = Query("", description="Search text; typos tolerated"),
    category_id: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, description="relevance | newest | price_asc | price_desc | rating | popular"),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Search active courses"""
    request = SearchRequest(
        query=q,
        category_id=category_id,
        status=CourseStatusFilter.ACTIVE,
        sort=sort,
        page=paging.page,
        page_size=paging.page_size,
    )
    return await service.search_courses(db, request)

@router.get("/top-viewed", response_model=List[CourseSummary])
async def top_viewed_courses(
    limit: Optional[str] = Query(None, description="Number of courses (capped)"),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Most viewed active courses"""
    return await service.top_viewed(db, coerce_positive_int(limit, None))

@router.get("/newest", response_model=List[CourseSummary])
async def newest_courses(
    limit: Optional[str] = Query(None, description="Number of courses (capped)"),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Most recently updated active courses"""
    return await service.top_newest(db, coerce_positive_int(limit, None))

@router.get("/{course_id}", response_model=CourseDetail)
async def get_course(
    course_id: int = Path(..., description="Course ID"),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    course = await service.course_detail(db, course_id)
    if course is None or course.is_disabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course

@router.get("/{course_id}/ratings", response_model=RatingSummary)
async def get_course_ratings(
    course_id: int = Path(..., description="Course ID"),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Rating aggregate and star distribution of a listed course"""
    await _require_listed(db, course_id, service)
    return await service.rating_summary(db, course_id)

@router.get("/{course_id}/reviews", response_model=ReviewPage)
async def get_course_reviews(
    course_id: int = Path(..., description="Course ID"),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Newest reviews of a listed course"""
    await _require_listed(db, course_id, service)
    return await service.course_reviews(db, course_id, paging.page, paging.page_size)


@instructor_router.get("/{instructor_id}/courses", response_model=ResultPage)
async def get_instructor_courses(
    instructor_id: int = Path(..., description="Instructor user ID"),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """All courses of an instructor, disabled ones included"""
    return await service.courses_by_instructor(db, instructor_id, paging.page, paging.page_size)


@admin_router.get("", response_model=ResultPage)
async def admin_list_courses(
    q: Optional[str] = Query("", description="Search text"),
    status_filter: Optional[str] = Query(None, alias="status", description="active | disabled"),
    category_id: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    service: CatalogService = Depends(get_catalog_service),
):
    """Moderation table: every course, optionally filtered by status"""
    request = SearchRequest(
        query=q,
        status=status_filter,
        category_id=category_id,
        sort=sort or "newest",
        page=paging.page,
        page_size=paging.page_size,
    )
    return await service.query_catalog(db, request, default_page_size=settings.ADMIN_PAGE_SIZE)
