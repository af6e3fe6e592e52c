"""Query facade: parameterized statement execution with a uniform result shape."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, TypeVar, Union

from sqlalchemy import exc as sa_exc, text
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql import Executable

from meditrack.db.pool import ConnectionPool
from meditrack.exceptions import AppError, ConflictError, DatabaseConnectionError, QueryError
from meditrack.utils.logger import get_logger

logger = get_logger("db.facade")

T = TypeVar("T")
Statement = Union[str, Executable]
Params = Optional[Mapping[str, Any]]


@dataclass
class RowSet:
    """Rows returned by a statement plus the affected-row count.

    ``inserted_id`` is set for INSERT statements: from a returned ``id`` column,
    otherwise from the key the driver reports for the new row.
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    inserted_id: Any = None

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)


def _constraint_name(exc: sa_exc.DBAPIError) -> Optional[str]:
    # asyncpg exposes the violated constraint on the driver exception
    for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    return None


def translate_error(exc: sa_exc.SQLAlchemyError) -> AppError:
    """Map a SQLAlchemy/driver error onto the application error taxonomy."""
    if isinstance(exc, sa_exc.IntegrityError):
        return ConflictError("Constraint violation", constraint=_constraint_name(exc))
    if isinstance(exc, sa_exc.InterfaceError) or (
        isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated
    ):
        logger.error(f"Database connection lost: {exc}")
        return DatabaseConnectionError("Database connection lost")
    logger.error(f"Database query error: {exc}")
    return QueryError("Database query failed")


def _is_insert(stmt: Executable) -> bool:
    if getattr(stmt, "is_insert", False):
        return True
    return bool(getattr(stmt, "is_text", False) and stmt.text.lstrip().lower().startswith("insert"))


async def run_statement(conn: AsyncConnection, statement: Statement, params: Params = None) -> RowSet:
    """Execute one statement on ``conn``; parameters always travel as bind values."""
    stmt = text(statement) if isinstance(statement, str) else statement
    try:
        if params:
            result = await conn.execute(stmt, dict(params))
        else:
            result = await conn.execute(stmt)
        rows = [dict(row._mapping) for row in result.all()] if result.returns_rows else []
        rowcount = result.rowcount
    except sa_exc.SQLAlchemyError as exc:
        raise translate_error(exc) from exc

    if rowcount is None or rowcount < 0:
        rowcount = len(rows)
    inserted_id = None
    if _is_insert(stmt):
        inserted_id = rows[0].get("id") if rows else _generated_key(result, stmt)
    return RowSet(rows=rows, rowcount=rowcount, inserted_id=inserted_id)


def _generated_key(result: CursorResult, stmt: Executable) -> Any:
    """Key of a row inserted without RETURNING, when the driver reports one."""
    if getattr(stmt, "is_insert", False):
        try:
            key = result.inserted_primary_key
        except sa_exc.InvalidRequestError:
            return None
        return key[0] if key else None
    # textual INSERT: only the DBAPI cursor knows (sqlite, mysql; not asyncpg)
    try:
        return result.lastrowid or None
    except (sa_exc.SQLAlchemyError, AttributeError):
        return None


class QueryRunner:
    """Common query helpers; subclasses decide which connection runs the statement."""

    async def execute(self, statement: Statement, params: Params = None) -> RowSet:
        raise NotImplementedError

    async def transaction(self, unit_of_work: Callable[["QueryRunner"], Awaitable[T]]) -> T:
        raise NotImplementedError

    async def query(self, statement: Statement, params: Params = None) -> List[Dict[str, Any]]:
        return (await self.execute(statement, params)).rows

    async def query_one(self, statement: Statement, params: Params = None) -> Optional[Dict[str, Any]]:
        """First row or None; zero results is not an error."""
        return (await self.execute(statement, params)).first()

    async def insert(self, statement: Statement, params: Params = None) -> RowSet:
        return await self.execute(statement, params)

    async def update(self, statement: Statement, params: Params = None) -> int:
        return (await self.execute(statement, params)).rowcount

    async def delete(self, statement: Statement, params: Params = None) -> int:
        return (await self.execute(statement, params)).rowcount


class Database(QueryRunner):
    """Runs each statement on its own pooled connection, committed on success."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def execute(self, statement: Statement, params: Params = None) -> RowSet:
        await self.pool.initialize()
        async with self.pool.connection() as conn:
            try:
                async with conn.begin():
                    return await run_statement(conn, statement, params)
            except sa_exc.SQLAlchemyError as exc:
                # begin/commit failures; statement errors are already translated
                raise translate_error(exc) from exc

    async def transaction(self, unit_of_work: Callable[["QueryRunner"], Awaitable[T]]) -> T:
        from meditrack.db.transaction import run_in_transaction

        return await run_in_transaction(self.pool, unit_of_work)
