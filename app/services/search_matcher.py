from typing import Optional
import logging

from sqlalchemy import Float, func, or_, literal
from sqlalchemy.sql.elements import ColumnElement

from app.core.config import settings
from app.models.catalog import Course

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


def _escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class SearchMatcher:
    """
    Builds the text predicate for catalog search.

    A course matches when ANY strategy accepts it:
      1. accent-insensitive substring of title or short description
      2. full-text match ('simple' config, web search syntax)
      3. trigram similarity above the threshold (typo tolerance)

    Strategies carry no weight; ordering is left to the sort mode.
    """

    def __init__(self, similarity_threshold: float = None):
        self.similarity_threshold = (
            settings.SEARCH_SIMILARITY_THRESHOLD
            if similarity_threshold is None else similarity_threshold
        )

    @staticmethod
    def is_blank(query: Optional[str]) -> bool:
        return query is None or not query.strip()

    @staticmethod
    def normalize(query: str) -> str:
        return query.strip().lower()

    def substring_clause(self, normalized: str) -> ColumnElement:
        pattern = func.unaccent(func.lower(literal(f"%{_escape_like(normalized)}%")))
        return or_(
            func.unaccent(func.lower(Course.title)).like(pattern, escape=LIKE_ESCAPE),
            func.unaccent(func.lower(Course.short_description)).like(pattern, escape=LIKE_ESCAPE),
        )

    def full_text_clause(self, raw_query: str) -> ColumnElement:
        # websearch syntax: quoted phrases, -exclusions, "or", bare words ANDed
        return Course.search_vector.op("@@")(
            func.websearch_to_tsquery("simple", raw_query.strip())
        )

    def similarity_clause(self, normalized: str) -> ColumnElement:
        return func.similarity(
            Course.search_text_normalized,
            func.unaccent(func.lower(literal(normalized))),
            type_=Float,
        ) > self.similarity_threshold

    def build_predicate(self, query: Optional[str]) -> Optional[ColumnElement]:
        """Return the OR of all strategies, or None when there is no text to match."""
        if self.is_blank(query):
            return None

        normalized = self.normalize(query)
        logger.debug(f"Building search predicate for '{normalized}' (threshold={self.similarity_threshold})")
        return or_(
            self.substring_clause(normalized),
            self.full_text_clause(query),
            self.similarity_clause(normalized),
        )

search_matcher = SearchMatcher()
