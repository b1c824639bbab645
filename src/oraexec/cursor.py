"""
Async cursor wrapper for oracledb connections.

Every network-bound call is awaited, so each one is a cancellation point.
"""
import logging
import time
from collections.abc import Sequence
from functools import wraps
from typing import Any

from oraexec.types import Column, columns_from_cursor_description

logger = logging.getLogger(__name__)


def _bind_count(args: Any) -> int:
    return len(args) if args else 0


def dumpsql(func):
    """Decorator for logging SQL statements, bind counts and timing."""
    @wraps(func)
    async def wrapper(self, operation: str, parameters: Any = None, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nbinds: {_bind_count(parameters)}')
        try:
            return await func(self, operation, parameters, *args, **kwargs)
        except Exception:
            logger.error(f'Error with statement:\nSQL:\n{operation}\nbinds: {_bind_count(parameters)}')
            raise
        finally:
            elapsed = time.time() - start
            self.connwrapper.addcall(elapsed)
            logger.debug(f'Statement time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Cursor wrapper around an oracledb AsyncCursor.
    """

    def __init__(self, cursor: Any, connection_wrapper: Any) -> None:
        """Initialize cursor wrapper.

        Args:
            cursor: The underlying oracledb AsyncCursor
            connection_wrapper: The connection wrapper that created this cursor
        """
        self.dbapi_cursor = cursor
        self.connwrapper = connection_wrapper

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    @property
    def description(self) -> list | None:
        """Column descriptions for last statement."""
        return self.dbapi_cursor.description

    @property
    def columns(self) -> list[Column]:
        return columns_from_cursor_description(self.dbapi_cursor)

    @property
    def rowcount(self) -> int:
        """Number of rows affected by last operation."""
        return self.dbapi_cursor.rowcount

    def var(self, typ: Any, size: int = 0, **kwargs: Any) -> Any:
        """Create a bind variable owned by this cursor."""
        return self.dbapi_cursor.var(typ, size, **kwargs)

    def close(self) -> None:
        self.dbapi_cursor.close()

    async def fetchone(self) -> tuple | None:
        return await self.dbapi_cursor.fetchone()

    async def fetchall(self) -> list[tuple]:
        return await self.dbapi_cursor.fetchall()

    @dumpsql
    async def execute(self, operation: str, parameters: Sequence | dict | None = None) -> int:
        """Execute a statement and return the affected row count."""
        await self.dbapi_cursor.execute(operation, parameters)
        return self.dbapi_cursor.rowcount

    @dumpsql
    async def callproc(self, operation: str, parameters: Sequence | dict | None = None) -> int:
        """Call a stored procedure by name.

        A dict binds as keyword parameters (``name => :name``), a sequence
        binds positionally.
        """
        if isinstance(parameters, dict):
            await self.dbapi_cursor.callproc(operation, keyword_parameters=parameters)
        else:
            await self.dbapi_cursor.callproc(operation, list(parameters or []))
        return self.dbapi_cursor.rowcount
