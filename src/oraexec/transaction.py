"""
Transaction handling for statement execution.
"""
import logging
from enum import Enum
from typing import Any

from oraexec.connection import disable_auto_commit
from oraexec.types import IsolationLevel, resolve_isolation_level

logger = logging.getLogger(__name__)

# Oracle offers READ COMMITTED and SERIALIZABLE; the other levels are served
# by the nearest level that gives at least the requested guarantees.
ISOLATION_STATEMENTS: dict[IsolationLevel, str | None] = {
    IsolationLevel.UNSPECIFIED: None,
    IsolationLevel.READ_UNCOMMITTED: 'SET TRANSACTION ISOLATION LEVEL READ COMMITTED',
    IsolationLevel.READ_COMMITTED: 'SET TRANSACTION ISOLATION LEVEL READ COMMITTED',
    IsolationLevel.REPEATABLE_READ: 'SET TRANSACTION ISOLATION LEVEL SERIALIZABLE',
    IsolationLevel.SERIALIZABLE: 'SET TRANSACTION ISOLATION LEVEL SERIALIZABLE',
    }


class TransactionState(Enum):
    IDLE = 'idle'
    OPEN = 'open'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'


class Transaction:
    """Async context manager for running a statement in an explicit transaction.

    The transaction is committed only through `commit()`. Leaving the block
    with an exception rolls it back; leaving it normally without a commit
    leaves it open for the connection teardown to discard.

    Examples
        async with Transaction(cn, TransactionIsolationLevel.READ_COMMITTED) as tx:
            await cursor.execute('update ...', args)
            await tx.commit()
    """

    def __init__(self, cn: Any, isolation_level: Any = None) -> None:
        self.connection = cn
        self.isolation_level = resolve_isolation_level(isolation_level)
        self.state = TransactionState.IDLE

    async def __aenter__(self):
        disable_auto_commit(self.connection)
        statement = ISOLATION_STATEMENTS[self.isolation_level]
        if statement:
            cursor = self.connection.cursor()
            try:
                await cursor.execute(statement)
            finally:
                cursor.close()
        self.state = TransactionState.OPEN
        logger.debug(f'Started transaction ({self.isolation_level.value}) '
                     f'for connection {id(self.connection)}')
        return self

    async def __aexit__(self, exc_type: type | None, value: BaseException | None,
                        traceback: Any | None) -> None:
        if exc_type is not None and self.state is TransactionState.OPEN:
            await self.rollback()

    async def commit(self) -> None:
        await self.connection.commit()
        self.state = TransactionState.COMMITTED
        logger.debug(f'Committed transaction for connection {id(self.connection)}')

    async def rollback(self) -> None:
        await self.connection.rollback()
        self.state = TransactionState.ROLLED_BACK
        logger.warning('Rolling back the current transaction')
