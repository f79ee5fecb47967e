"""
Database setup/config/funcs.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

import asyncpg
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from dbshift_common.exceptions import QueryException
from dbshift_common.settings import DatabaseSettings


async def run_script(session: AsyncSession, sql: str) -> None:
    """
    Run a multi-statement SQL script verbatim inside the session's transaction. asyncpg
    only accepts several statements through its simple query protocol, so the script
    goes to the driver connection directly once the transaction has begun. No bind
    parameter parsing happens, so literals like '{"a":1}'::jsonb pass through unchanged.
    """
    try:
        await session.execute(text("SELECT 1"))
        connection = await session.connection()
        raw = await connection.get_raw_connection()
        await raw.driver_connection.execute(sql)
    except (SQLAlchemyError, asyncpg.PostgresError) as exc:
        raise QueryException(sql, exc) from exc


class DatabaseConnection:
    """
    Thin wrapper around an async SQLAlchemy engine: hands out transactional
    sessions and runs named-parameter SQL.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: DatabaseSettings, url: Optional[str] = None) -> "DatabaseConnection":
        return cls(
            url or settings.sqlalchemy,
            echo=settings.debug,
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session whose transaction commits when the block exits normally and
        rolls back on any exception, task cancellation included.
        """
        async with self.SessionLocal() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def execute(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> int:
        """Execute a statement with named (:name) parameters, returning the affected row count."""
        if session is None:
            async with self.session() as session:
                return await self.execute(sql, params, session=session)
        try:
            result = await session.execute(text(sql), dict(params or {}))
        except SQLAlchemyError as exc:
            raise QueryException(sql, exc) from exc
        return result.rowcount

    async def scalar(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        session: Optional[AsyncSession] = None,
    ) -> Any:
        """Execute a query and return the first column of the first row (or None)."""
        if session is None:
            async with self.session() as session:
                return await self.scalar(sql, params, session=session)
        try:
            result = await session.execute(text(sql), dict(params or {}))
        except SQLAlchemyError as exc:
            raise QueryException(sql, exc) from exc
        return result.scalar()

    async def execute_script(self, session: AsyncSession, sql: str) -> None:
        await run_script(session, sql)

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def __aenter__(self) -> "DatabaseConnection":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()
