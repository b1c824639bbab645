"""
Database connection handling with SQLAlchemy and python-oracledb.

This module provides:
1. The `connect()` coroutine opening one connection per invocation
2. The `ConnectionWrapper` class exposing the oracledb async driver connection
3. Engine creation and management through a thread-safe registry
4. `release_all_pools()`, the post-invocation step that drains every pool

Every invocation opens its own connection and drains the whole registry when
it ends, on both success and failure paths.
"""
import asyncio
import atexit
import decimal
import logging
import threading
from collections.abc import Callable
from typing import Any, Self

import oracledb
from oraexec.cursor import Cursor
from oraexec.exceptions import ConnectionFailure, error_code
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

__all__ = [
    'ConnectionWrapper',
    'connect',
    'configure_connection',
    'get_engine_for_options',
    'release_all_pools',
    'dispose_all_engines',
    'enable_auto_commit',
    'disable_auto_commit',
]

logger = logging.getLogger(__name__)

ENGINE_URL = 'oracle+oracledb://'

_engine_registry: dict[str, AsyncEngine] = {}
_engine_registry_lock = threading.RLock()


def output_type_handler(cursor: Any, metadata: Any) -> Any:
    """Fetch NUMBER columns as Decimal so no float rounding happens.
    """
    if metadata.type_code is oracledb.DB_TYPE_NUMBER:
        return cursor.var(decimal.Decimal, arraysize=cursor.arraysize)
    return None


def get_engine_for_options(connection_string: str, options: Any,
                           engine_factory: Callable[..., AsyncEngine] = create_async_engine,
                           **kwargs: Any) -> AsyncEngine:
    """Get or create an async SQLAlchemy engine for the connection string.

    The connection string is passed through to the driver unmodified.
    """
    key = f'{connection_string}_{options.use_pool}_{options.pool_max_connections}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug('Using existing engine')
            return _engine_registry[key]

        engine_kwargs: dict[str, Any] = {
            'echo': False,
            'connect_args': {'dsn': connection_string},
            }

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['max_overflow'] = 0
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(ENGINE_URL, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine (pooled={options.use_pool})')

        return engine


async def release_all_pools() -> None:
    """Dispose every registered engine, closing all pooled connections.

    Both executors call this as their final step so that no pooled state
    survives an invocation.
    """
    with _engine_registry_lock:
        engines = list(_engine_registry.values())
        _engine_registry.clear()
    for engine in engines:
        await engine.dispose()
    logger.debug(f'Released {len(engines)} engine pool(s)')


def dispose_all_engines() -> None:
    """Synchronous best-effort disposal used at interpreter exit.
    """
    with _engine_registry_lock:
        engines = list(_engine_registry.values())
        _engine_registry.clear()
    for engine in engines:
        try:
            engine.sync_engine.dispose(close=False)
        except Exception as e:
            logger.debug(f'Could not dispose engine at exit: {e}')


atexit.register(dispose_all_engines)


def configure_connection(driver_connection: Any, options: Any) -> None:
    """Apply per-invocation driver settings.
    """
    driver_connection.call_timeout = int(options.timeout_seconds * 1000)
    driver_connection.outputtypehandler = output_type_handler


def enable_auto_commit(connection: Any) -> None:
    """Enable auto-commit mode on the driver connection.
    """
    raw_conn = getattr(connection, 'driver_connection', connection)
    raw_conn.autocommit = True
    logger.debug(f'Enabled auto-commit for connection {id(raw_conn)}')


def disable_auto_commit(connection: Any) -> None:
    """Disable auto-commit mode on the driver connection.
    """
    raw_conn = getattr(connection, 'driver_connection', connection)
    raw_conn.autocommit = False


class ConnectionWrapper:
    """Wraps a SQLAlchemy async connection and its oracledb driver connection

    This class provides a thin wrapper that:
    1. Tracks statement execution counts and timing
    2. Supports the async context manager protocol, closing on exit
    3. Exposes the underlying oracledb AsyncConnection via driver_connection
    """

    def __init__(self, sa_connection: AsyncConnection, driver_connection: Any,
                 options: Any = None) -> None:
        self.sa_connection = sa_connection
        self.driver_connection = driver_connection
        self.options = options
        self.calls = 0
        self.time = 0
        self.closed = False

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None,
                        exc_tb: Any | None) -> None:
        await self.close()

    def cursor(self) -> Cursor:
        """Get a wrapped cursor for this connection
        """
        return Cursor(self.driver_connection.cursor(), self)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    async def commit(self) -> None:
        await self.driver_connection.commit()

    async def rollback(self) -> None:
        await self.driver_connection.rollback()

    async def close(self) -> None:
        """Close the connection; an open transaction is discarded by the server.
        """
        if self.closed:
            return
        self.closed = True
        await self.sa_connection.close()
        logger.debug(f'Connection closed: {self.calls} statements in {self.time:.2f}s')


async def connect(connection_string: str, options: Any) -> ConnectionWrapper:
    """Open a connection for a single invocation.

    Any failure while opening is reported as ConnectionFailure; cancellation
    propagates unchanged.
    """
    engine = get_engine_for_options(connection_string, options)
    sa_connection = None
    try:
        sa_connection = await engine.connect()
        raw_connection = await sa_connection.get_raw_connection()
        driver_connection = raw_connection.driver_connection
        configure_connection(driver_connection, options)
    except asyncio.CancelledError:
        if sa_connection is not None:
            await sa_connection.close()
        raise
    except Exception as exc:
        if sa_connection is not None:
            await sa_connection.close()
        logger.error(f'Could not connect: {exc}')
        raise ConnectionFailure(str(exc) or type(exc).__name__, error_code(exc)) from exc

    logger.debug(f'Connected (driver connection {id(driver_connection)})')
    return ConnectionWrapper(sa_connection, driver_connection, options)
