"""
Stored procedure and anonymous block execution with output parameters.

No explicit transaction is opened: the call runs with driver auto-commit.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from oraexec.connection import connect, enable_auto_commit, release_all_pools
from oraexec.exceptions import handle_failure
from oraexec.marshal import BoundParameter, attach, bind_all
from oraexec.materialize import build_document, drain_parameters, render_document
from oraexec.options import ProcedureOptions, load_procedure_options
from oraexec.types import CommandType, Count, ParameterDescriptor, Result
from oraexec.types import ReturnType

logger = logging.getLogger(__name__)


@dataclass
class ProcedureInput:
    """Procedure or command to execute.

    command: Procedure name for STORED_PROCEDURE, or statement/anonymous
        block text for COMMAND
    connection_string: Passed to the driver unmodified
    command_type: How `command` is interpreted
    parameters: Input parameters
    """
    command: str
    connection_string: str
    command_type: CommandType | str = CommandType.STORED_PROCEDURE
    parameters: Sequence[ParameterDescriptor] = field(default_factory=list)


@dataclass
class ProcedureOutput:
    """Output parameters and the shape they are returned in.
    """
    output_parameters: Sequence[ParameterDescriptor] = field(default_factory=list)
    return_type: ReturnType | str = ReturnType.XML_STRING


async def _call(cursor: Any, procedure: ProcedureInput, arguments: Any) -> int:
    if CommandType(procedure.command_type) is CommandType.STORED_PROCEDURE:
        return await cursor.callproc(procedure.command, arguments)
    return await cursor.execute(procedure.command, arguments)


async def _execute(cn: Any, procedure: ProcedureInput, bound: list[BoundParameter],
                   return_type: ReturnType, options: ProcedureOptions) -> Result:
    enable_auto_commit(cn)
    cursor = cn.cursor()
    arguments, variables = attach(cursor, bound, options.bind_parameter_by_name)
    rowcount = await _call(cursor, procedure, arguments)

    if return_type is ReturnType.AFFECTED_ROWS:
        return Result.ok(Count(rowcount))

    parameters = await drain_parameters(bound, variables)
    if return_type is ReturnType.PARAMETERS:
        return Result.ok(parameters)

    root = build_document(parameters.values)
    return Result.ok(render_document(root, return_type))


async def execute_procedure(procedure: ProcedureInput, output: ProcedureOutput | None = None,
                            options: ProcedureOptions | dict[str, Any] | str | None = None,
                            config: Any = None) -> Result:
    """Execute a stored procedure or command with input and output parameters.

    Returns a Result whose output is a Count (AFFECTED_ROWS), a ParameterMap
    (PARAMETERS) or a Document (JSON_STRING, XML_STRING, XML_DOCUMENT).
    Errors are raised or returned as a failed Result depending on
    `options.throw_error_on_failure`. The connection is always closed and
    all pools released. Cancellation propagates as asyncio.CancelledError.
    """
    options = load_procedure_options(options, config)
    output = output or ProcedureOutput()
    try:
        return_type = ReturnType(output.return_type)
        bound = bind_all(procedure.parameters) + bind_all(output.output_parameters)
        async with await connect(procedure.connection_string, options) as cn:
            return await _execute(cn, procedure, bound, return_type, options)
    except Exception as exc:
        return handle_failure(exc, options.throw_error_on_failure)
    finally:
        await release_all_pools()
