from typing import Generic, TypeVar, Optional, Callable, Any
from sqlalchemy.orm import Session
from fastapi.concurrency import run_in_threadpool
from app.repositories.base import BaseRepository

T = TypeVar("T")

class BaseService(Generic[T]):
    def __init__(self, repository: BaseRepository[T]):
        self.repository = repository

    async def run_blocking(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run synchronous DB work off the event loop."""
        return await run_in_threadpool(func, *args, **kwargs)

    async def get(self, db: Session, id: int) -> Optional[T]:
        return await self.run_blocking(self.repository.get, db, id)

