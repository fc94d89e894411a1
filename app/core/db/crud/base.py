from typing import (
    Any,
    TypeVar,
    Generic,
    Type,
    Sequence,
    Iterable,
)
from uuid import UUID

from sqlalchemy import (
    SQLColumnExpression,
    and_,
    func,
    update as sa_update,
    delete as sa_delete,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.sql import Select, Delete, Update

from app.core.config import database_logger
from app.core.db.soft_delete import (
    DELETED_AT,
    apply_soft_delete_filter,
    batch_soft_delete,
    soft_delete,
)
from app.core.exceptions.types import DatabaseException

T = TypeVar("T")
S = TypeVar("S", bound=Select)


class BaseDB(Generic[T]):
    """
    Generic async CRUD helpers for a mapped model.

    Read helpers hide soft-deleted rows for models that carry
    ``deleted_at``; pass ``include_deleted=True`` to see them. Generic
    failures are wrapped in ``DatabaseException``, except for deletes
    (soft and hard), which let database errors through unchanged so the
    caller can roll back its own transaction.
    """

    def __init__(self, model: Type[T]):
        self.model = model

    @property
    def soft_deletable(self) -> bool:
        return hasattr(self.model, DELETED_AT)

    def _visible(self, stmt: S, include_deleted: bool = False) -> S:
        """Apply the soft-delete filter unless deleted rows were requested."""
        if include_deleted or not self.soft_deletable:
            return stmt
        return apply_soft_delete_filter(stmt, self.model)

    async def get_by_id(
        self,
        session: AsyncSession,
        id: UUID,
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> T | None:
        """
        Asynchronously retrieves an instance of the model by its primary key.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            id (UUID): The primary key value of the model instance to retrieve.
            options (list[Any], optional): SQLAlchemy loader options (e.g., selectinload).
            include_deleted (bool, optional): Also return a soft-deleted row. Defaults to False.

        Returns:
            T | None: The model instance if found and visible, otherwise None.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt: Select = (
                select(self.model)
                .options(*options)
                .where(getattr(self.model, "id") == id)
            )
            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def get_all(
        self,
        session: AsyncSession,
        filters: list[Any] | None = None,
        order_by: list[Any] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> Sequence[T]:
        """
        Retrieve visible records, optionally filtered, ordered and paginated.

        Args:
            session: Async SQLAlchemy session.
            filters: SQLAlchemy expressions to apply.
            order_by: Columns/expressions to order by.
            limit: Max number of records to return.
            offset: Number of records to skip.
            options: SQLAlchemy loader options (e.g., selectinload).
            include_deleted: Also return soft-deleted rows.

        Returns:
            A sequence of model instances.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options)
            if filters:
                stmt = stmt.where(*filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            if limit:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error retrieving all {self.model.__name__} records: {str(e)}"
            ) from e

    async def get_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        order_by: list[SQLColumnExpression] | None = None,
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> Sequence[T]:
        """
        Asynchronously retrieves visible records matching equality filters.

        Args:
            session (AsyncSession): The asynchronous database session to use for the query.
            filters (dict): Column name -> value equality conditions.
            order_by (list[SQLColumnExpression] | None, optional): Ordering expressions.
            options (list[Any], optional): SQLAlchemy loader options.
            include_deleted (bool, optional): Also return soft-deleted rows.

        Returns:
            Sequence[T]: Matching model instances.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).filter_by(**filters)
            if order_by:
                stmt = stmt.order_by(*order_by)
            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def get_one_by_filters(
        self,
        session: AsyncSession,
        filters: dict,
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> T | None:
        """
        Asynchronously retrieves the first visible record matching equality filters.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).filter_by(**filters)
            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with filters {filters}: {str(e)}"
            ) from e

    async def get_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> Sequence[T]:
        """
        Asynchronously retrieves visible records matching SQL expressions.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).where(and_(*conditions))
            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalars().all()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def get_one_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        options: list[Any] = [],
        include_deleted: bool = False,
    ) -> T | None:
        """
        Asynchronously retrieves the first visible record matching SQL expressions.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(self.model).options(*options).where(and_(*conditions))
            result = await session.execute(self._visible(stmt, include_deleted))
            return result.scalars().first()
        except (SQLAlchemyError, ValueError) as e:
            raise DatabaseException(
                f"Error retrieving one {self.model.__name__} with conditions {conditions}: {str(e)}"
            ) from e

    async def count(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression] = (),
        include_deleted: bool = False,
    ) -> int:
        """
        Count visible records matching the given conditions.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        try:
            stmt = select(func.count()).select_from(self.model)
            if conditions:
                stmt = stmt.where(and_(*conditions))
            result = await session.execute(self._visible(stmt, include_deleted))
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error counting {self.model.__name__} records: {str(e)}"
            ) from e

    async def exists(
        self, session: AsyncSession, filters: dict, include_deleted: bool = False
    ) -> bool:
        """
        Checks whether a visible record matching the filters exists.

        Raises:
            DatabaseException: If an error occurs while querying the database.
        """
        return (
            await self.get_one_by_filters(
                session, filters, include_deleted=include_deleted
            )
            is not None
        )

    async def create(
        self,
        session: AsyncSession,
        data: dict,
        commit_self: bool = True,
    ) -> T:
        """
        Asynchronously creates and persists a new instance of the model.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session.
            data (dict): Fields and values to initialize the model instance.
            commit_self (bool, optional): If True, commits the transaction; otherwise
                only flushes. Defaults to True.

        Returns:
            T: The newly created model instance.

        Raises:
            DatabaseException: If an error occurs while creating the instance.
        """
        try:
            obj = self.model(**data)
            session.add(obj)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            await session.refresh(obj)
            return obj
        except (SQLAlchemyError, ValueError, TypeError) as e:
            raise DatabaseException(
                f"Error creating {self.model.__name__}: {str(e)}"
            ) from e

    async def update(
        self, session: AsyncSession, id: UUID, updates: dict, commit_self: bool = True
    ) -> int:
        """
        Updates a visible record by primary key; soft-deleted rows are not touched.

        Args:
            session (AsyncSession): The SQLAlchemy asynchronous session.
            id (UUID): The primary key of the record to update.
            updates (dict): Fields and their new values.
            commit_self (bool, optional): If True, commits; otherwise flushes.

        Returns:
            int: Number of rows updated (0 or 1).

        Raises:
            DatabaseException: If an error occurs while updating the record.
        """
        try:
            stmt: Update = (
                sa_update(self.model)
                .where(self.model.id == id)  # type: ignore[attr-defined]
                .values(**updates)
                .execution_options(synchronize_session=False)
            )
            if self.soft_deletable:
                stmt = apply_soft_delete_filter(stmt, self.model)
            result = await session.execute(stmt)

            if commit_self:
                await session.commit()
            else:
                await session.flush()

            return result.rowcount  # type: ignore[attr-defined]
        except SQLAlchemyError as e:
            raise DatabaseException(
                f"Error updating {self.model.__name__} with ID {id}: {str(e)}"
            ) from e

    async def delete_by_conditions(
        self,
        session: AsyncSession,
        conditions: Sequence[SQLColumnExpression],
        commit_self: bool = True,
    ) -> int:
        """
        Physically deletes the records matching the conditions.

        Reserved for ephemeral data (e.g. expired tokens); domain records go
        through ``soft_delete`` instead.

        Returns:
            int: The number of records deleted.

        Raises:
            SQLAlchemyError: Unchanged, after being logged.
        """
        try:
            stmt: Delete = (
                sa_delete(self.model)
                .where(and_(*conditions))
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)

            if commit_self:
                await session.commit()
            else:
                await session.flush()
        except SQLAlchemyError as e:
            database_logger.error(f"Error deleting {self.model.__name__} rows: {e}")
            raise

        deleted = result.rowcount  # type: ignore[attr-defined]
        database_logger.info(f"Deleted {deleted} {self.model.__name__} row(s)")
        return deleted

    async def soft_delete(self, session: AsyncSession, id: UUID, **match: Any) -> int:
        """
        Soft-delete one record by primary key, optionally scoped by extra
        equality conditions (e.g. ``user_id=...``).

        Runs inside the caller's transaction and does not commit.

        Returns:
            int: 1 if the record was active and matched, otherwise 0.
        """
        return await soft_delete(session, self.model, {"id": id, **match})

    async def batch_soft_delete(
        self,
        session: AsyncSession,
        ids: Iterable[UUID] | None,
        **extra: Any,
    ) -> int:
        """
        Soft-delete every active record among ``ids`` matching ``extra``.

        Runs inside the caller's transaction and does not commit.

        Returns:
            int: The number of records marked as deleted.
        """
        return await batch_soft_delete(session, self.model, ids, extra)
