"""
Soft-delete helpers shared by every table that carries ``deleted_at``.

Rows are never physically removed by these helpers: deleting a row sets
its ``deleted_at`` timestamp, and read paths exclude rows whose marker is
set unless they explicitly ask for them.

- ``apply_soft_delete_filter`` restricts a query to active rows.
- ``soft_delete`` marks the active rows matching equality conditions.
- ``batch_soft_delete`` marks the active rows among a set of primary keys.

The delete helpers run a single conditional UPDATE
(``... WHERE <match> AND deleted_at IS NULL``) inside the caller's
transaction, so two concurrent deletes of the same row cannot both count
it. They never commit, never retry and let database errors propagate
unchanged: the caller owns the transaction and decides on rollback.

Example:
    >>> async with session.begin():
    ...     count = await soft_delete(session, "notifications", {"id": nid, "user_id": uid})
    >>> stmt = apply_soft_delete_filter(select(Notification).where(Notification.user_id == uid))
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, TypeVar

from sqlalchemy import (
    ColumnElement,
    MetaData,
    TableClause,
    column,
    literal_column,
    table as table_clause,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import Base

DELETED_AT = "deleted_at"

Q = TypeVar("Q")

# A table name, a Table/TableClause, or a mapped model class
TableRef = Any


def apply_soft_delete_filter(query: Q, alias: Any = None) -> Q:
    """
    Restrict a query to rows whose ``deleted_at`` marker is NULL.

    Args:
        query: Any statement with a ``where`` method (``Select``, ``Update``,
            ``Delete``, ORM ``Query``).
        alias: Optional table alias. A string is used to qualify the column
            (``<alias>.deleted_at``); an aliased entity, model or table is
            asked for its own ``deleted_at`` column. Without an alias the
            unqualified column name is used.

    Returns:
        The same kind of statement with the visibility condition added. An
        alias that does not exist in the query produces a statement that
        fails when executed.
    """
    if alias is None:
        marker: ColumnElement = column(DELETED_AT)
    elif isinstance(alias, str):
        marker = literal_column(f"{alias}.{DELETED_AT}")
    else:
        marker = _marker_column(alias)
    return query.where(marker.is_(None))  # type: ignore[attr-defined]


async def soft_delete(
    session: AsyncSession,
    table: TableRef,
    match: Mapping[str, Any],
) -> int:
    """
    Soft-delete the active rows of ``table`` that match ``match``.

    Rows already marked are left untouched, so repeating the call with the
    same predicate affects 0 rows.

    Args:
        session: Session bound to the caller's transaction.
        table: Table name, Table object or mapped model class.
        match: Equality conditions (column name -> value). Must not be empty.

    Returns:
        int: Number of rows marked as deleted.

    Raises:
        ValueError: If ``match`` is empty.
        SQLAlchemyError: Propagated unchanged from the database.
    """
    if not match:
        raise ValueError(
            "soft_delete requires at least one match condition; "
            "use batch_soft_delete to delete by primary keys"
        )

    target = _resolve_table(table, match.keys())
    stmt = (
        update(target)
        .where(target.c[DELETED_AT].is_(None), *_equalities(target, match))
        .values(_marker_values(target))
    )
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[attr-defined]


async def batch_soft_delete(
    session: AsyncSession,
    table: TableRef,
    ids: Iterable[Any] | None,
    extra: Mapping[str, Any] | None = None,
    id_column: str = "id",
) -> int:
    """
    Soft-delete the active rows whose primary key is in ``ids``.

    Args:
        session: Session bound to the caller's transaction.
        table: Table name, Table object or mapped model class.
        ids: Primary-key values. ``None`` or empty returns 0 without
            touching the database.
        extra: Additional equality conditions, typically ownership scoping
            such as ``{"user_id": current_user.id}``.
        id_column: Name of the primary-key column. Defaults to "id".

    Returns:
        int: Number of rows marked as deleted in the single UPDATE.

    Raises:
        SQLAlchemyError: Propagated unchanged from the database.
    """
    id_values = list(ids) if ids else []
    if not id_values:
        return 0

    extra = extra or {}
    target = _resolve_table(table, [id_column, *extra.keys()])
    stmt = (
        update(target)
        .where(
            target.c[id_column].in_(id_values),
            target.c[DELETED_AT].is_(None),
            *_equalities(target, extra),
        )
        .values(_marker_values(target))
    )
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[attr-defined]


def _resolve_table(
    table: TableRef,
    columns: Iterable[str],
    metadata: MetaData | None = None,
) -> TableClause:
    """
    Turn a table reference into something ``update()`` accepts.

    Names of mapped tables resolve to the typed ``Table`` so values such as
    UUIDs are bound correctly; unknown names become a lightweight table
    clause holding only the columns the statement needs.
    """
    if isinstance(table, str):
        known = (metadata or Base.metadata).tables.get(table)
        if known is not None:
            return known
        names = dict.fromkeys([*columns, DELETED_AT])
        return table_clause(table, *(column(name) for name in names))

    if isinstance(table, TableClause):
        return table

    mapped = getattr(table, "__table__", None)
    if isinstance(mapped, TableClause):
        return mapped

    raise TypeError(f"Cannot soft-delete from {table!r}: not a table reference")


def _marker_column(alias: Any) -> ColumnElement:
    marker = getattr(alias, DELETED_AT, None)
    if marker is None and hasattr(alias, "c"):
        marker = alias.c[DELETED_AT]
    if marker is None:
        raise TypeError(f"{alias!r} has no {DELETED_AT} column")
    return marker


def _equalities(target: TableClause, conditions: Mapping[str, Any]) -> list:
    return [target.c[name] == value for name, value in conditions.items()]


def _marker_values(target: TableClause) -> dict[str, datetime]:
    now = datetime.now(timezone.utc)
    values = {DELETED_AT: now}
    if "updated_at" in target.c:
        values["updated_at"] = now
    return values
