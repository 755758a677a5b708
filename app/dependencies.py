from typing import Optional
from fastapi import Query
from app.services.catalog import CatalogService, catalog_service
from app.services.category import CategoryService, category_service


def get_catalog_service() -> CatalogService:
    return catalog_service

def get_category_service() -> CategoryService:
    return category_service

# Common query parameters
class PageParams:
    """
    Raw paging input as text. The catalog coerces junk ("abc", "-3", "")
    to page 1 or the default size rather than answering 422.
    """
    def __init__(
        self,
        page: Optional[str] = Query(None, description="1-based page number"),
        page_size: Optional[str] = Query(None, description="Items per page (capped)"),
    ):
        self.page = page
        self.page_size = page_size
