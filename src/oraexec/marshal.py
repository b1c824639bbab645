"""
Parameter marshalling: declarative descriptors to driver bind variables.

Binding happens in two steps:
1. `bind()` resolves a ParameterDescriptor into a BoundParameter. This is pure
   and never touches the connection, so configuration errors surface before
   anything is executed.
2. `attach()` creates one driver variable per BoundParameter on a cursor and
   returns the execute arguments, either by name or by position.
"""
import decimal
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import oracledb
import pandas as pd
from oraexec.exceptions import BindingError
from oraexec.types import VARIABLE_LENGTH_TYPES, ParameterDescriptor
from oraexec.types import ParameterDirection, ParameterType

logger = logging.getLogger(__name__)

# Logical parameter type -> type accepted by cursor.var()
DRIVER_TYPES: dict[ParameterType, Any] = {
    ParameterType.BFILE: oracledb.DB_TYPE_BFILE,
    ParameterType.BLOB: oracledb.DB_TYPE_BLOB,
    ParameterType.BOOLEAN: oracledb.DB_TYPE_BOOLEAN,
    ParameterType.BYTE: int,
    ParameterType.CHAR: oracledb.DB_TYPE_CHAR,
    ParameterType.CLOB: oracledb.DB_TYPE_CLOB,
    ParameterType.DATE: oracledb.DB_TYPE_DATE,
    ParameterType.DECIMAL: decimal.Decimal,
    ParameterType.DOUBLE: oracledb.DB_TYPE_BINARY_DOUBLE,
    ParameterType.INT16: int,
    ParameterType.INT32: int,
    ParameterType.INT64: int,
    ParameterType.INTERVAL_DS: oracledb.DB_TYPE_INTERVAL_DS,
    ParameterType.INTERVAL_YM: oracledb.DB_TYPE_INTERVAL_YM,
    ParameterType.JSON: oracledb.DB_TYPE_JSON,
    ParameterType.LONG: oracledb.DB_TYPE_LONG,
    ParameterType.LONG_RAW: oracledb.DB_TYPE_LONG_RAW,
    ParameterType.NCHAR: oracledb.DB_TYPE_NCHAR,
    ParameterType.NCLOB: oracledb.DB_TYPE_NCLOB,
    ParameterType.NVARCHAR2: oracledb.DB_TYPE_NVARCHAR,
    ParameterType.RAW: oracledb.DB_TYPE_RAW,
    ParameterType.SINGLE: oracledb.DB_TYPE_BINARY_FLOAT,
    ParameterType.TIMESTAMP: oracledb.DB_TYPE_TIMESTAMP,
    ParameterType.TIMESTAMP_LTZ: oracledb.DB_TYPE_TIMESTAMP_LTZ,
    ParameterType.TIMESTAMP_TZ: oracledb.DB_TYPE_TIMESTAMP_TZ,
    ParameterType.VARCHAR2: oracledb.DB_TYPE_VARCHAR,
    ParameterType.XML_TYPE: oracledb.DB_TYPE_XMLTYPE,
    }


@dataclass(frozen=True)
class BoundParameter:
    """A descriptor resolved to exactly one driver type.
    """
    name: str
    direction: ParameterDirection
    data_type: ParameterType
    driver_type: Any
    size: int = 0
    value: Any = None

    @property
    def is_output(self) -> bool:
        return self.direction is ParameterDirection.OUT

    def create_var(self, cursor: Any) -> Any:
        """Create the driver variable for this parameter on `cursor`.

        The variable belongs to that cursor only. Input variables carry the
        value; output variables are left unset for the database to fill.
        """
        var = cursor.var(self.driver_type, self.size)
        if not self.is_output:
            var.setvalue(0, self.value)
        return var


def resolve_parameter_type(data_type: Any) -> ParameterType:
    """Resolve a logical type given as enum member or name.

    Raises BindingError for anything unrecognized; nothing is coerced.
    """
    try:
        parameter_type = ParameterType(data_type)
    except ValueError as exc:
        raise BindingError(f'Unsupported parameter data type: {data_type!r}') from exc
    if parameter_type not in DRIVER_TYPES:
        raise BindingError(f'No driver type for parameter data type: {parameter_type.value}')
    return parameter_type


def _convert_input_value(value: Any) -> Any:
    """Unwrap NumPy and pandas scalars to their Python equivalents.

    Everything else passes through untouched.
    """
    if value is None:
        return None

    if value is pd.NaT or value is pd.NA:
        return None

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()

    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        return pd.Timestamp(value).to_pydatetime()

    if isinstance(value, np.generic):
        return value.item()

    return value


def _input_size(parameter_type: ParameterType, size: int | None, value: Any) -> int:
    if size:
        return size
    if parameter_type in VARIABLE_LENGTH_TYPES and isinstance(value, str | bytes):
        return max(len(value), 1)
    return 0


def bind(descriptor: ParameterDescriptor) -> BoundParameter:
    """Resolve a parameter descriptor into a BoundParameter.
    """
    parameter_type = resolve_parameter_type(descriptor.data_type)
    direction = ParameterDirection(descriptor.direction)
    driver_type = DRIVER_TYPES[parameter_type]

    if direction is ParameterDirection.OUT:
        if parameter_type in VARIABLE_LENGTH_TYPES and not descriptor.size:
            raise BindingError(f'Output parameter {descriptor.name!r} of type '
                               f'{parameter_type.value} requires a size')
        return BoundParameter(descriptor.name, direction, parameter_type,
                              driver_type, descriptor.size or 0)

    value = _convert_input_value(descriptor.value)
    size = _input_size(parameter_type, descriptor.size, value)
    return BoundParameter(descriptor.name, direction, parameter_type,
                          driver_type, size, value)


def bind_all(descriptors: Sequence[ParameterDescriptor] | None) -> list[BoundParameter]:
    """Bind a sequence of descriptors, preserving declaration order.
    """
    return [bind(descriptor) for descriptor in descriptors or ()]


def attach(cursor: Any, bound: Sequence[BoundParameter],
           by_name: bool) -> tuple[dict[str, Any] | list[Any], list[Any]]:
    """Create driver variables on `cursor` and build the execute arguments.

    Returns the arguments (a dict keyed by name when `by_name`, otherwise a
    list in declaration order) and the created variables, index-aligned
    with `bound`. Positional binding ignores names entirely, so repeated
    names bind independently in order.
    """
    variables = [parameter.create_var(cursor) for parameter in bound]

    if not by_name:
        return list(variables), variables

    arguments: dict[str, Any] = {}
    for parameter, var in zip(bound, variables):
        if parameter.name in arguments:
            logger.warning(f'Parameter {parameter.name!r} declared more than once, '
                           f'binding the last declaration by name')
        arguments[parameter.name] = var
    return arguments, variables
