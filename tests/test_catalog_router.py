import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.database import get_db
from app.dependencies import get_catalog_service, get_category_service
from app.main import app
from app.schemas.catalog import (
    CategoryMenuItem, CategoryRead, CourseDetail, CourseStatusFilter, CourseSummary,
    Pagination, ResultPage, SortMode,
)

API = settings.API_V1_STR


def _summary(id=1, **overrides):
    data = dict(
        id=id, title=f"Course {id}", price=100.0, effective_price=100.0,
        last_updated=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )
    data.update(overrides)
    return CourseSummary(**data)


def _page(items, total=None, page=1, page_size=10):
    total = len(items) if total is None else total
    return ResultPage(
        items=items,
        pagination=Pagination(page=page, page_size=page_size, total=total, total_pages=-(-total // page_size)),
    )


@pytest.fixture
def catalog_svc():
    svc = MagicMock()
    for name in (
        "list_courses", "search_courses", "query_catalog", "top_viewed", "top_newest",
        "course_detail", "rating_summary", "course_reviews", "courses_by_instructor",
    ):
        setattr(svc, name, AsyncMock())
    svc.is_listed = AsyncMock(return_value=True)
    return svc


@pytest.fixture
def category_svc():
    svc = MagicMock()
    svc.build_hierarchical_menu = AsyncMock(return_value=[])
    svc.get_category = AsyncMock()
    return svc


@pytest.fixture
def client(catalog_svc, category_svc):
    app.dependency_overrides[get_db] = lambda: MagicMock()
    app.dependency_overrides[get_catalog_service] = lambda: catalog_svc
    app.dependency_overrides[get_category_service] = lambda: category_svc
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==============================================================================
# /courses
# ==============================================================================

def test_list_courses_forces_active_and_coerces_paging(client, catalog_svc):
    catalog_svc.list_courses.return_value = _page([_summary(1), _summary(2)], total=12)

    response = client.get(f"{API}/courses", params={"category_id": "5", "page": "abc", "sort": "price_asc"})

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 12
    assert [item["id"] for item in body["items"]] == [1, 2]

    _, filters = catalog_svc.list_courses.call_args.args
    assert filters.status == CourseStatusFilter.ACTIVE
    assert filters.category_id == 5
    assert filters.page == 1
    assert filters.sort == SortMode.PRICE_ASC


def test_search_passes_query_text(client, catalog_svc):
    catalog_svc.search_courses.return_value = _page([_summary(3)])

    response = client.get(f"{API}/courses/search", params={"q": "pyhton", "sort": "unknown"})

    assert response.status_code == 200
    _, request = catalog_svc.search_courses.call_args.args
    assert request.query == "pyhton"
    assert request.sort == SortMode.NEWEST
    assert request.status == CourseStatusFilter.ACTIVE


def test_search_without_query(client, catalog_svc):
    catalog_svc.search_courses.return_value = _page([])

    response = client.get(f"{API}/courses/search")

    assert response.status_code == 200
    _, request = catalog_svc.search_courses.call_args.args
    assert request.has_text is False


def test_top_viewed(client, catalog_svc):
    catalog_svc.top_viewed.return_value = [_summary(1, view_count=900)]

    response = client.get(f"{API}/courses/top-viewed", params={"limit": 3})

    assert response.status_code == 200
    assert response.json()[0]["view_count"] == 900
    assert catalog_svc.top_viewed.call_args.args[1] == 3


def test_newest(client, catalog_svc):
    catalog_svc.top_newest.return_value = []

    response = client.get(f"{API}/courses/newest")

    assert response.status_code == 200
    assert response.json() == []


def test_course_detail(client, catalog_svc):
    catalog_svc.course_detail.return_value = CourseDetail(
        **_summary(42).model_dump(), category_id=5, instructor_id=1,
    )

    response = client.get(f"{API}/courses/42")

    assert response.status_code == 200
    assert response.json()["id"] == 42


@pytest.mark.parametrize("detail", [
    None,
    CourseDetail(**_summary(42, is_disabled=True).model_dump(), category_id=5, instructor_id=1),
])
def test_course_detail_not_found(client, catalog_svc, detail):
    catalog_svc.course_detail.return_value = detail

    response = client.get(f"{API}/courses/42")

    assert response.status_code == 404


@pytest.mark.parametrize("path", ["ratings", "reviews"])
def test_course_subresources_not_found_for_unlisted_course(client, catalog_svc, path):
    catalog_svc.is_listed.return_value = False

    response = client.get(f"{API}/courses/42/{path}")

    assert response.status_code == 404
    catalog_svc.rating_summary.assert_not_awaited()
    catalog_svc.course_reviews.assert_not_awaited()


def test_course_reviews_of_listed_course(client, catalog_svc):
    catalog_svc.course_reviews.return_value = {
        "items": [],
        "pagination": {"page": 1, "page_size": 5, "total": 0, "total_pages": 0},
    }

    response = client.get(f"{API}/courses/42/reviews")

    assert response.status_code == 200
    assert catalog_svc.is_listed.call_args.args[1] == 42


@pytest.mark.parametrize("endpoint, method", [("top-viewed", "top_viewed"), ("newest", "top_newest")])
@pytest.mark.parametrize("raw_limit, expected", [("abc", None), ("-2", None), ("0", None), ("500", 500), ("4", 4)])
def test_top_lists_coerce_limit(client, catalog_svc, endpoint, method, raw_limit, expected):
    getattr(catalog_svc, method).return_value = []

    response = client.get(f"{API}/courses/{endpoint}", params={"limit": raw_limit})

    assert response.status_code == 200
    assert getattr(catalog_svc, method).call_args.args[1] == expected


def test_store_failure_surfaces_as_503(client, catalog_svc):
    catalog_svc.list_courses.side_effect = HTTPException(status_code=503, detail="Catalog is temporarily unavailable")

    response = client.get(f"{API}/courses")

    assert response.status_code == 503
    assert response.json()["detail"] == "Catalog is temporarily unavailable"


# ==============================================================================
# /categories
# ==============================================================================

def test_category_menu(client, category_svc):
    category_svc.build_hierarchical_menu.return_value = [
        CategoryMenuItem(
            category=CategoryRead(id=1, name="Programming"),
            subcategories=[CategoryRead(id=3, name="Web", parent_id=1)],
        )
    ]

    response = client.get(f"{API}/categories/menu")

    assert response.status_code == 200
    assert response.json()[0]["subcategories"][0]["name"] == "Web"


def test_category_courses_unknown_category(client, category_svc, catalog_svc):
    category_svc.get_category.return_value = None

    response = client.get(f"{API}/categories/9/courses")

    assert response.status_code == 404
    catalog_svc.list_courses.assert_not_awaited()


def test_category_courses(client, category_svc, catalog_svc):
    category_svc.get_category.return_value = CategoryRead(id=9, name="Web")
    catalog_svc.list_courses.return_value = _page([_summary(1)])

    response = client.get(f"{API}/categories/9/courses", params={"page_size": "3"})

    assert response.status_code == 200
    _, filters = catalog_svc.list_courses.call_args.args
    assert filters.category_id == 9
    assert filters.page_size == 3
    assert filters.status == CourseStatusFilter.ACTIVE


# ==============================================================================
# /instructors and /admin/courses
# ==============================================================================

def test_instructor_courses(client, catalog_svc):
    catalog_svc.courses_by_instructor.return_value = _page([_summary(1, is_disabled=True)])

    response = client.get(f"{API}/instructors/7/courses", params={"page": "2"})

    assert response.status_code == 200
    assert catalog_svc.courses_by_instructor.call_args.args[1:] == (7, "2", None)


def test_admin_list_filters_by_status(client, catalog_svc):
    catalog_svc.query_catalog.return_value = _page([])

    response = client.get(f"{API}/admin/courses", params={"status": "disabled", "q": "java"})

    assert response.status_code == 200
    call = catalog_svc.query_catalog.call_args
    request = call.args[1]
    assert request.status == CourseStatusFilter.DISABLED
    assert request.query == "java"
    assert request.sort == SortMode.NEWEST
    assert call.kwargs["default_page_size"] == settings.ADMIN_PAGE_SIZE


def test_admin_list_without_status_shows_everything(client, catalog_svc):
    catalog_svc.query_catalog.return_value = _page([])

    client.get(f"{API}/admin/courses")

    assert catalog_svc.query_catalog.call_args.args[1].status is None


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
