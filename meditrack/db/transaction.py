"""Transaction coordinator: one connection, all-or-nothing, always released."""

from typing import Awaitable, Callable, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

from meditrack.db.facade import Params, QueryRunner, RowSet, Statement, run_statement, translate_error
from meditrack.db.pool import ConnectionPool
from meditrack.exceptions import QueryError
from meditrack.utils.logger import get_logger

logger = get_logger("db.transaction")

T = TypeVar("T")


class TransactionScope(QueryRunner):
    """Query helpers bound to the connection of an open transaction."""

    def __init__(self, connection: AsyncConnection):
        self.connection = connection

    async def execute(self, statement: Statement, params: Params = None) -> RowSet:
        return await run_statement(self.connection, statement, params)

    async def transaction(self, unit_of_work):
        raise QueryError("Nested transactions are not supported")


async def _rollback(trans: AsyncTransaction) -> None:
    try:
        await trans.rollback()
    except Exception:
        # the unit of work's error is the one that propagates
        logger.exception("Transaction rollback failed")


async def run_in_transaction(
    pool: ConnectionPool,
    unit_of_work: Callable[[TransactionScope], Awaitable[T]],
) -> T:
    """Run ``unit_of_work`` atomically.

    Commits when it returns, rolls back and re-raises when it raises (including
    cancellation). The connection goes back to the pool on every path.
    """
    await pool.initialize()
    conn = await pool.acquire()
    try:
        trans = conn.begin()
        try:
            await trans.start()
        except sa_exc.SQLAlchemyError as exc:
            raise translate_error(exc) from exc

        try:
            result = await unit_of_work(TransactionScope(conn))
        except BaseException as exc:
            logger.warning(f"Rolling back transaction: {type(exc).__name__}")
            await _rollback(trans)
            raise

        try:
            await trans.commit()
        except sa_exc.SQLAlchemyError as exc:
            raise translate_error(exc) from exc
        return result
    finally:
        await pool.release(conn)
