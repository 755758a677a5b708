import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.repositories.category import CategoryRepository
from app.services.category import CategoryService


def _category(id, name, parent_id=None):
    return SimpleNamespace(id=id, name=name, parent_id=parent_id)


def _children_lookup(tree):
    """children_of() stand-in backed by a {parent_id: [child ids]} dict."""
    def children_of(db, parent_ids):
        return [child for parent in parent_ids for child in tree.get(parent, [])]
    return children_of


@pytest.fixture
def mock_repo():
    return MagicMock()


@pytest.fixture
def category_service(mock_repo):
    return CategoryService(repository=mock_repo)


# ==============================================================================
# TEST SUITE: expand_category_scope
# ==============================================================================

@pytest.mark.asyncio
async def test_expand_scope_includes_all_descendants(category_service, mock_repo):
    # 1 -> (2, 3), 2 -> 4, 4 -> 5
    mock_repo.children_of.side_effect = _children_lookup({1: [2, 3], 2: [4], 4: [5]})

    scope = await category_service.expand_category_scope(MagicMock(), 1)

    assert scope == {1, 2, 3, 4, 5}
    # one query per tree level, plus the empty last level
    assert mock_repo.children_of.call_count == 4


@pytest.mark.asyncio
async def test_expand_scope_leaf_is_just_itself(category_service, mock_repo):
    mock_repo.children_of.side_effect = _children_lookup({1: [2]})

    assert await category_service.expand_category_scope(MagicMock(), 2) == {2}


@pytest.mark.asyncio
async def test_expand_scope_unknown_id_is_just_itself(category_service, mock_repo):
    mock_repo.children_of.return_value = []

    assert await category_service.expand_category_scope(MagicMock(), 999) == {999}


@pytest.mark.asyncio
async def test_expand_scope_terminates_on_cycle(category_service, mock_repo):
    mock_repo.children_of.side_effect = _children_lookup({1: [2], 2: [3], 3: [1]})

    assert await category_service.expand_category_scope(MagicMock(), 1) == {1, 2, 3}


@pytest.mark.asyncio
async def test_expand_scope_store_failure_is_503(mock_db_session):
    mock_db_session.query.side_effect = OperationalError("SELECT", {}, Exception("down"))
    service = CategoryService(repository=CategoryRepository())

    with pytest.raises(HTTPException) as exc_info:
        await service.expand_category_scope(mock_db_session, 1)

    assert exc_info.value.status_code == 503


# ==============================================================================
# TEST SUITE: build_hierarchical_menu
# ==============================================================================

@pytest.mark.asyncio
async def test_menu_groups_children_under_top_level(category_service, mock_repo):
    mock_repo.get_all_ordered.return_value = [
        _category(1, "Programming"),
        _category(2, "Design"),
        _category(3, "Web", parent_id=1),
        _category(4, "Mobile", parent_id=1),
        _category(5, "UX", parent_id=2),
    ]

    menu = await category_service.build_hierarchical_menu(MagicMock())

    assert [item.category.name for item in menu] == ["Design", "Programming"]
    assert [sub.name for sub in menu[0].subcategories] == ["UX"]
    assert [sub.name for sub in menu[1].subcategories] == ["Mobile", "Web"]


@pytest.mark.asyncio
async def test_menu_top_level_without_children(category_service, mock_repo):
    mock_repo.get_all_ordered.return_value = [_category(1, "Music")]

    menu = await category_service.build_hierarchical_menu(MagicMock())

    assert len(menu) == 1
    assert menu[0].subcategories == []


@pytest.mark.asyncio
async def test_menu_is_empty_when_store_fails(category_service, mock_repo):
    mock_repo.get_all_ordered.side_effect = OperationalError("SELECT", {}, Exception("down"))

    assert await category_service.build_hierarchical_menu(MagicMock()) == []


@pytest.mark.asyncio
async def test_get_category_delegates_to_repository(category_service, mock_repo):
    mock_db = MagicMock()
    mock_repo.get.return_value = _category(3, "Web", parent_id=1)

    category = await category_service.get_category(mock_db, 3)

    mock_repo.get.assert_called_once_with(mock_db, 3)
    assert category.name == "Web"
