"""Base repository class with common CRUD operations."""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from urbanfix.db import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """
    Session-bound data access for one model.

    Repositories flush so generated ids and defaults are visible, but never
    commit; the caller owns the transaction.

    Usage:
        class IssueRepository(BaseRepository[Issue]):
            model = Issue
    """

    model: type[T]

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, id: Any) -> T | None:
        return self.session.get(self.model, id)

    def create(self, **fields) -> T:
        instance = self.model(**fields)
        self.session.add(instance)
        self.session.flush()
        return instance

    def count(self, **filters) -> int:
        """
        Count rows, optionally restricted to exact column matches.

        Raises:
            ValueError: If a filter key is not a column of the model.
        """
        stmt = select(func.count()).select_from(self.model).where(*self._column_criteria(filters))
        return self.session.scalar(stmt) or 0

    def _column_criteria(self, filters: dict[str, Any]) -> list:
        columns = self.model.__table__.columns  # type: ignore[attr-defined]
        criteria = []
        for key, value in filters.items():
            if key not in columns:
                raise ValueError(f"Unknown filter key: {key}")
            criteria.append(columns[key] == value)
        return criteria
