# tests/conftest.py
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock
from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql

from app.schemas.catalog import CatalogQueryPlan, CourseStatusFilter

FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_db_session():
    """Fake DB session (no database behind it)"""
    return MagicMock(spec=Session)


@pytest.fixture
def sql_session():
    """Unbound session: builds real Query objects that can be compiled, never executed."""
    session = Session()
    yield session
    session.close()


def _compile_sql(query) -> str:
    statement = getattr(query, "statement", query)
    return str(statement.compile(
        dialect=postgresql.dialect(),
        compile_kwargs={"literal_binds": True},
    ))


@pytest.fixture
def fixed_now():
    return FIXED_NOW


def _make_course_row(id, **overrides):
    """Shape of one row returned by the catalog page query."""
    row = dict(
        id=id,
        title=f"Course {id}",
        short_description=f"Short description {id}",
        price=Decimal("100.00"),
        promo_price=None,
        thumbnail=None,
        view_count=0,
        last_updated=FIXED_NOW - timedelta(days=90, minutes=id),
        is_disabled=False,
        is_completed=False,
        category_id=1,
        instructor_id=1,
        category_name="Programming",
        instructor_name="Ada Lovelace",
        average_rating=0,
        rating_count=0,
        enrollment_count=0,
    )
    row.update(overrides)
    return SimpleNamespace(**row)


class FakeCatalogRepository:
    """
    In-memory stand-in for CatalogRepository.

    Honors category/status/instructor filters and pages a newest-first,
    id tie-broken ordering. Text filters are recorded but not evaluated:
    text matching lives in SQL.
    """

    def __init__(self, rows):
        self.rows = list(rows)
        self.plans = []

    def _matches(self, row, plan: CatalogQueryPlan) -> bool:
        for spec in plan.filters:
            if spec.kind == "category" and row.category_id not in spec.category_ids:
                return False
            if spec.kind == "status" and row.is_disabled != (spec.status == CourseStatusFilter.DISABLED):
                return False
            if spec.kind == "instructor" and row.instructor_id != spec.instructor_id:
                return False
        return True

    def _ordered(self, plan):
        matched = [row for row in self.rows if self._matches(row, plan)]
        return sorted(matched, key=lambda r: (-r.last_updated.timestamp(), r.id))

    def fetch_page(self, db, plan):
        self.plans.append(plan)
        matched = self._ordered(plan)
        return len(matched), matched[plan.offset:plan.offset + plan.page_size]

    def fetch_rows(self, db, plan):
        self.plans.append(plan)
        return self._ordered(plan)[:plan.page_size]

    def fetch_detail(self, db, course_id):
        return next((row for row in self.rows if row.id == course_id), None)

    def get(self, db, id):
        return self.fetch_detail(db, id)


@pytest.fixture
def compile_sql():
    """Render a Query/statement as PostgreSQL text with bound values inlined."""
    return _compile_sql


@pytest.fixture
def make_course_row():
    return _make_course_row


@pytest.fixture
def fake_catalog_repo():
    """Factory: FakeCatalogRepository over the given rows."""
    return FakeCatalogRepository
