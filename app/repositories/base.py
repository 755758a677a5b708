from typing import Generic, Type, TypeVar, Optional, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException, status
import logging

T = TypeVar("T")

logger = logging.getLogger(__name__)

CATALOG_UNAVAILABLE_DETAIL = "Catalog is temporarily unavailable"


class BaseRepository(Generic[T]):
    """Read-only access shared by the catalog repositories."""

    def __init__(self, model: Type[T]):
        self.model = model

    def unavailable(self, action: str, error: Exception) -> HTTPException:
        """Log a data-store failure and turn it into a 503 for the caller."""
        logger.error(f"Error {action} {self.model.__name__}: {error}")
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=CATALOG_UNAVAILABLE_DETAIL,
        )

    def get(self, db: Session, id: Any) -> Optional[T]:
        try:
            return db.query(self.model).filter(self.model.id == id).first()
        except SQLAlchemyError as e:
            raise self.unavailable(f"getting id={id} of", e) from e
