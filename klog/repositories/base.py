"""
Generic repository over one SQLModel table.

Repositories flush but never commit: the service owning the unit of work
decides when a change becomes visible, so it can commit before invalidating
caches or publishing file delete tasks.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from klog.errors.database import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateEntryError,
    RecordNotFoundError,
)

type FilterValue = str | int | float | bool | datetime | None

UNIQUE_VIOLATION_MARKERS = ("unique", "duplicate")


class BaseRepository[ModelT: SQLModel]:
    """
    Integer-keyed CRUD shared by the post, taxonomy and media repositories.

    Subclasses set ``model``; ``id_field`` names the primary key column.
    """

    model: type[ModelT]
    id_field: str = "id"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def _id_column(self) -> Any:
        return getattr(self.model, self.id_field)

    async def create(self, data: dict[str, Any]) -> ModelT:
        """
        Validate ``data`` into a new row and flush it.

        Raises:
            DuplicateEntryError: If a unique column already holds the value.
        """
        return await self._persist(self.model.model_validate(data))

    async def get_by_id(self, record_id: int) -> ModelT | None:
        return await self.get_by_field(self.id_field, record_id)

    async def get_by_field(self, field_name: str, value: FilterValue) -> ModelT | None:
        """Return the row whose ``field_name`` equals ``value``, if any."""
        column = getattr(self.model, field_name)
        result = await self.session.execute(select(self.model).where(column == value))
        return result.scalar_one_or_none()

    async def get_or_raise(self, record_id: int) -> ModelT:
        """
        Load a row that must exist.

        Raises:
            RecordNotFoundError: If no row has this id.
        """
        if (record := await self.get_by_id(record_id)) is None:
            mssg = f"{self.model.__name__} with ID {record_id} not found"
            raise RecordNotFoundError(detail=mssg)
        return record

    async def get_all(self, skip: int = 0, limit: int = 10) -> list[ModelT]:
        """Offset page of rows, highest id first."""
        statement = (
            select(self.model).order_by(self._id_column.desc()).offset(skip).limit(limit)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def update(self, record: ModelT, values: dict[str, Any]) -> ModelT:
        """Set ``values`` on a loaded row and flush it."""
        for name, value in values.items():
            setattr(record, name, value)
        return await self._persist(record)

    async def delete(self, record_id: int) -> bool:
        """
        Delete a row by id.

        Returns:
            bool: False if there was no such row.
        """
        if (record := await self.get_by_id(record_id)) is None:
            return False
        await self.session.delete(record)
        await self.session.flush()
        return True

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(self.model))
        return result.scalar() or 0

    async def _persist(self, record: ModelT) -> ModelT:
        """
        Flush a new or changed row and reload server-side values.

        Raises:
            DuplicateEntryError: On a unique constraint violation.
            DatabaseError: On any other integrity violation.
            DatabaseConnectionError: If the statement could not be executed.
        """
        self.session.add(record)
        try:
            await self.session.flush()
            await self.session.refresh(record)
        except IntegrityError as e:
            await self.session.rollback()
            reason = str(e.orig or e)
            if any(marker in reason.lower() for marker in UNIQUE_VIOLATION_MARKERS):
                raise DuplicateEntryError(detail=reason) from e
            raise DatabaseError(detail=f"Database integrity error: {reason}") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise DatabaseConnectionError(detail=f"Failed to save record: {e}") from e
        return record

    async def _exists(
        self,
        field_name: str,
        value: FilterValue,
        exclude_id: int | None = None,
    ) -> bool:
        """Whether another row already holds ``value`` in ``field_name``."""
        statement = select(1).where(getattr(self.model, field_name) == value)
        if exclude_id is not None:
            statement = statement.where(self._id_column != exclude_id)
        result = await self.session.execute(statement.limit(1))
        return result.scalar_one_or_none() is not None
