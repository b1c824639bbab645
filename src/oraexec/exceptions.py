"""
Database-specific exception classes.
"""
import logging
import re

import oracledb
from oraexec.types import Result

logger = logging.getLogger(__name__)

_VENDOR_CODE_REGEX = re.compile(r'\b(ORA|DPY|DPI|PLS)-\d{4,5}\b')


def error_code(exc: BaseException) -> str | None:
    """Extract the vendor error code (e.g. ``ORA-00001``) from an exception.

    Prefers the driver's structured error object and falls back to scanning
    the message text.
    """
    if isinstance(exc, DatabaseError) and exc.code:
        return exc.code
    error = exc.args[0] if exc.args else None
    code = getattr(error, 'full_code', None)
    if code:
        return code
    match = _VENDOR_CODE_REGEX.search(str(exc))
    return match.group(0) if match else None


class DatabaseError(Exception):
    """Base class for all oraexec errors.
    """

    def __init__(self, message: str = '', code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class BindingError(DatabaseError):
    """Parameter descriptor cannot be mapped to a driver type.
    """


class QueryError(DatabaseError):
    """Error in statement or procedure execution.
    """


class IntegrityViolationError(QueryError):
    """Database constraint violation error.
    """


class MaterializationError(DatabaseError):
    """Error converting a driver value into the requested output shape.
    """


DbConnectionError = (
    oracledb.OperationalError,
    oracledb.InterfaceError,
    OSError,
    ConnectionFailure,
    )

IntegrityError = (
    oracledb.IntegrityError,
    IntegrityViolationError,
    )


def translate_error(exc: Exception) -> DatabaseError:
    """Map any exception raised during an invocation onto the module taxonomy.

    Errors already in the taxonomy pass through unchanged. Driver errors keep
    their message (which carries the vendor code) and expose the code on
    ``.code``.
    """
    if isinstance(exc, DatabaseError):
        return exc

    message = str(exc) or type(exc).__name__
    code = error_code(exc)

    if isinstance(exc, IntegrityError):
        return IntegrityViolationError(message, code)
    if isinstance(exc, DbConnectionError):
        return ConnectionFailure(message, code)
    return QueryError(message, code)


def handle_failure(exc: Exception, throw_error_on_failure: bool) -> Result:
    """Apply the error policy shared by both executors.

    Raises the translated error when `throw_error_on_failure` is set,
    otherwise returns a failed Result carrying the error message.
    """
    error = translate_error(exc)
    if throw_error_on_failure:
        if error is exc:
            raise error
        raise error from exc
    logger.debug(f'Returning failed result: {error}')
    return Result.failure(str(error))
