"""
Dialect-aware bulk INSERT helpers shared by the dimension resolver and the
batch writer.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import LoadError

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: AsyncSession):
    """``insert()`` construct supporting ON CONFLICT for the session's dialect."""
    name = session.get_bind().dialect.name
    try:
        return _INSERTS[name]
    except KeyError:
        raise LoadError(f"Unsupported database dialect: {name}", context={"dialect": name})


def chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    size = max(1, size)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def uniform_rows(model, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Give every row the same keys.

    Multi-row VALUES requires identical keys per row. Keys that are not
    columns of ``model`` are dropped and keys missing from a row become
    NULL. Columns no row sets are left out so their defaults apply.
    """
    columns = set(model.__table__.columns.keys())
    keys = []
    for row in rows:
        for key in row:
            if key in columns and key not in keys:
                keys.append(key)
    return [{key: row.get(key) for key in keys} for row in rows]


async def insert_rows(
    session: AsyncSession,
    model,
    rows: List[Dict[str, Any]],
    chunk_size: int,
    conflict_column: Optional[str] = None,
) -> int:
    """
    Bulk insert ``rows`` in chunks.

    With ``conflict_column`` rows colliding on that unique column are
    skipped (``ON CONFLICT DO NOTHING``) instead of failing the statement.

    Returns:
        Rows the database reports as inserted
    """
    if not rows:
        return 0

    insert = dialect_insert(session)
    inserted = 0
    for chunk in chunked(uniform_rows(model, rows), chunk_size):
        stmt = insert(model).values(list(chunk))
        if conflict_column is not None:
            stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_column])
        result = await session.execute(stmt)
        if result.rowcount is not None and result.rowcount >= 0:
            inserted += result.rowcount
    return inserted


async def select_ids_by_key(
    session: AsyncSession,
    model,
    key_column: str,
    keys: Sequence[Any],
    chunk_size: int,
) -> Dict[Any, int]:
    """Map business key to primary key for the ``keys`` that exist."""
    column = getattr(model, key_column)
    found: Dict[Any, int] = {}
    for chunk in chunked(list(keys), chunk_size):
        result = await session.execute(select(column, model.id).where(column.in_(chunk)))
        for key, row_id in result.all():
            found[key] = row_id
    return found
