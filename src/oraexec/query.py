"""
Statement execution inside an explicit transaction.

Lifecycle of one invocation:
    Idle -> Connected -> TransactionOpen -> Executing
         -> {Committed | RolledBack} -> Closed

Reader executions return a RowSet and never commit, so a SELECT with side
effects (e.g. calling a function that writes) is discarded at teardown.
Non-query executions commit before returning. Scalar executions return the
first cell without an explicit commit.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from oraexec.connection import connect, release_all_pools
from oraexec.exceptions import handle_failure
from oraexec.marshal import attach, bind_all
from oraexec.materialize import drain_rows, drain_scalar
from oraexec.options import QueryOptions, load_query_options
from oraexec.transaction import Transaction
from oraexec.types import Count, ExecuteType, ParameterDescriptor, Result
from oraexec.types import RowSet, Scalar

logger = logging.getLogger(__name__)

READ_KEYWORD = 'select'


@dataclass
class QueryInput:
    """Statement to execute.

    query: SQL text, e.g. "INSERT INTO MyTable (id, name) VALUES (:id, :name)"
    connection_string: Passed to the driver unmodified
    parameters: Input parameters for the statement
    execute_type: How the statement is executed (see ExecuteType)
    """
    query: str
    connection_string: str
    parameters: Sequence[ParameterDescriptor] = field(default_factory=list)
    execute_type: ExecuteType | str = ExecuteType.AUTO


def classify_execute_type(sql: str, execute_type: Any = ExecuteType.AUTO) -> ExecuteType:
    """Resolve AUTO to EXECUTE_READER or NON_QUERY; explicit types pass through.
    """
    execute_type = ExecuteType(execute_type)
    if execute_type is not ExecuteType.AUTO:
        return execute_type
    if sql.strip().lower().startswith(READ_KEYWORD):
        return ExecuteType.EXECUTE_READER
    return ExecuteType.NON_QUERY


async def _execute(cn: Any, tx: Transaction, query: QueryInput, bound: list,
                   execute_type: ExecuteType, options: QueryOptions) -> Result:
    cursor = cn.cursor()
    arguments, _ = attach(cursor, bound, options.bind_parameter_by_name)
    logger.debug(f'Executing statement as {execute_type.value}')

    if execute_type is ExecuteType.EXECUTE_READER:
        await cursor.execute(query.query, arguments)
        rows, columns = await drain_rows(cursor)
        return Result.ok(RowSet(options.data_loader(rows, columns), columns))

    if execute_type is ExecuteType.NON_QUERY:
        rowcount = await cursor.execute(query.query, arguments)
        await tx.commit()
        return Result.ok(Count(rowcount))

    await cursor.execute(query.query, arguments)
    return Result.ok(Scalar(await drain_scalar(cursor)))


async def execute_query(query: QueryInput,
                        options: QueryOptions | dict[str, Any] | str | None = None,
                        config: Any = None) -> Result:
    """Execute a single SQL statement in a transaction.

    Returns a Result whose output is a RowSet (reader), a Count (non-query)
    or a Scalar. On failure the transaction is rolled back; the error is
    raised or returned as a failed Result depending on
    `options.throw_error_on_failure`. The connection is always closed and
    all pools released. Cancellation propagates as asyncio.CancelledError.
    """
    options = load_query_options(options, config)
    try:
        execute_type = classify_execute_type(query.query, query.execute_type)
        bound = bind_all(query.parameters)
        async with await connect(query.connection_string, options) as cn:
            async with Transaction(cn, options.isolation_level) as tx:
                return await _execute(cn, tx, query, bound, execute_type, options)
    except Exception as exc:
        return handle_failure(exc, options.throw_error_on_failure)
    finally:
        await release_all_pools()
