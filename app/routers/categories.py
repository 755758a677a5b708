from fastapi import APIRouter, Depends, HTTPException, Query, Path, status
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.database import get_db
from app.dependencies import PageParams, get_catalog_service, get_category_service
from app.schemas.catalog import CategoryMenuItem, CourseFilters, CourseStatusFilter, ResultPage
from app.services.catalog import CatalogService
from app.services.category import CategoryService

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("/menu", response_model=List[CategoryMenuItem])
async def get_category_menu(
    db: Session = Depends(get_db),
    service: CategoryService = Depends(get_category_service),
):
    """Top-level categories with their subcategories, alphabetical"""
    return await service.build_hierarchical_menu(db)

@router.get("/{category_id}/courses", response_model=ResultPage)
async def get_category_courses(
    category_id: int = Path(..., description="Category ID"),
    sort: Optional[str] = Query(None),
    paging: PageParams = Depends(),
    db: Session = Depends(get_db),
    category_svc: CategoryService = Depends(get_category_service),
    catalog_svc: CatalogService = Depends(get_catalog_service),
):
    """Active courses of a category and all of its subcategories"""
    category = await category_svc.get_category(db, category_id)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")

    filters = CourseFilters(
        category_id=category_id,
        status=CourseStatusFilter.ACTIVE,
        sort=sort,
        page=paging.page,
        page_size=paging.page_size,
    )
    return await catalog_svc.list_courses(db, filters)
