"""
Consolidated type definitions for statement and procedure execution.

This module provides:
- Caller-facing enumerations (parameter types, execute/command/return types,
  isolation levels)
- Parameter descriptors: InputParameter, OutputParameter
- Column: Column metadata from cursor descriptions
- Result: The envelope returned by both executors, with its typed output
  variants (RowSet, Scalar, Count, ParameterMap, Document)
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self

logger = logging.getLogger(__name__)


class _LookupEnum(Enum):
    """Enum accepting member names case-insensitively, with or without underscores.
    """

    @classmethod
    def _missing_(cls, value: object) -> Self | None:
        if not isinstance(value, str):
            return None
        key = value.strip().replace('_', '').lower()
        for member in cls:
            if member.name.replace('_', '').lower() == key:
                return member
        return None


class ParameterType(_LookupEnum):
    """Logical parameter data types, independent of driver type names.
    """
    BFILE = 'BFile'
    BLOB = 'Blob'
    BOOLEAN = 'Boolean'
    BYTE = 'Byte'
    CHAR = 'Char'
    CLOB = 'Clob'
    DATE = 'Date'
    DECIMAL = 'Decimal'
    DOUBLE = 'Double'
    INT16 = 'Int16'
    INT32 = 'Int32'
    INT64 = 'Int64'
    INTERVAL_DS = 'IntervalDS'
    INTERVAL_YM = 'IntervalYM'
    JSON = 'Json'
    LONG = 'Long'
    LONG_RAW = 'LongRaw'
    NCHAR = 'NChar'
    NCLOB = 'NClob'
    NVARCHAR2 = 'NVarchar2'
    RAW = 'Raw'
    SINGLE = 'Single'
    TIMESTAMP = 'TimeStamp'
    TIMESTAMP_LTZ = 'TimeStampLTZ'
    TIMESTAMP_TZ = 'TimeStampTZ'
    VARCHAR2 = 'Varchar2'
    XML_TYPE = 'XmlType'


VARIABLE_LENGTH_TYPES = frozenset({
    ParameterType.CHAR,
    ParameterType.NCHAR,
    ParameterType.VARCHAR2,
    ParameterType.NVARCHAR2,
    ParameterType.RAW,
    })


class ParameterDirection(_LookupEnum):
    IN = 'In'
    OUT = 'Out'


class ExecuteType(_LookupEnum):
    """How a statement is executed.

    AUTO: EXECUTE_READER for statements starting with SELECT, NON_QUERY
    otherwise.
    EXECUTE_READER: Return the result set as rows.
    NON_QUERY: Return the number of affected rows and commit.
    SCALAR: Return the first column of the first row.
    """
    AUTO = 'Auto'
    EXECUTE_READER = 'ExecuteReader'
    NON_QUERY = 'NonQuery'
    SCALAR = 'Scalar'


class CommandType(_LookupEnum):
    """How a procedure command string is interpreted.
    """
    COMMAND = 'Command'
    STORED_PROCEDURE = 'StoredProcedure'


class ReturnType(_LookupEnum):
    """Requested shape of a procedure result.
    """
    AFFECTED_ROWS = 'AffectedRows'
    PARAMETERS = 'Parameters'
    JSON_STRING = 'JSONString'
    XML_STRING = 'XmlString'
    XML_DOCUMENT = 'XDocument'


class TransactionIsolationLevel(_LookupEnum):
    """Caller-facing transaction isolation levels.
    """
    DEFAULT = 'Default'
    NONE = 'None'
    READ_UNCOMMITTED = 'ReadUncommitted'
    READ_COMMITTED = 'ReadCommitted'
    REPEATABLE_READ = 'RepeatableRead'
    SERIALIZABLE = 'Serializable'


class IsolationLevel(Enum):
    """Resolved isolation level a transaction is started with.
    """
    UNSPECIFIED = 'Unspecified'
    READ_UNCOMMITTED = 'ReadUncommitted'
    READ_COMMITTED = 'ReadCommitted'
    REPEATABLE_READ = 'RepeatableRead'
    SERIALIZABLE = 'Serializable'


_ISOLATION_LEVELS = {
    TransactionIsolationLevel.NONE: IsolationLevel.UNSPECIFIED,
    TransactionIsolationLevel.READ_UNCOMMITTED: IsolationLevel.READ_UNCOMMITTED,
    TransactionIsolationLevel.READ_COMMITTED: IsolationLevel.READ_COMMITTED,
    TransactionIsolationLevel.REPEATABLE_READ: IsolationLevel.REPEATABLE_READ,
    TransactionIsolationLevel.SERIALIZABLE: IsolationLevel.SERIALIZABLE,
    TransactionIsolationLevel.DEFAULT: IsolationLevel.SERIALIZABLE,
    }


def resolve_isolation_level(level: Any) -> IsolationLevel:
    """Resolve a caller-facing isolation level.

    DEFAULT and anything unrecognized resolve to SERIALIZABLE.
    """
    try:
        level = TransactionIsolationLevel(level)
    except ValueError:
        logger.debug(f'Unrecognized isolation level {level!r}, using serializable')
        return IsolationLevel.SERIALIZABLE
    return _ISOLATION_LEVELS[level]


# Parameter descriptors

@dataclass
class ParameterDescriptor:
    """Declarative description of one bind parameter.
    """
    name: str
    data_type: ParameterType | str
    direction: ParameterDirection = ParameterDirection.IN
    size: int | None = None
    value: Any = None


class InputParameter(ParameterDescriptor):
    """Input parameter; the value is sent to the database verbatim.
    """

    def __init__(self, name: str, value: Any, data_type: ParameterType | str,
                 size: int | None = None) -> None:
        super().__init__(name=name, data_type=data_type,
                         direction=ParameterDirection.IN, size=size, value=value)


class OutputParameter(ParameterDescriptor):
    """Output parameter; `size` must hold the largest value the database
    may write for variable-length types.
    """

    def __init__(self, name: str, data_type: ParameterType | str,
                 size: int | None = None) -> None:
        super().__init__(name=name, data_type=data_type,
                         direction=ParameterDirection.OUT, size=size)


QueryParameter = InputParameter


# Column metadata

class Column:
    """Database column metadata."""

    def __init__(self,
                 name: str,
                 type_code: Any,
                 display_size: int | None = None,
                 internal_size: int | None = None,
                 precision: int | None = None,
                 scale: int | None = None,
                 nullable: bool | None = None):
        self.name = name
        self.type_code = type_code
        self.display_size = display_size
        self.internal_size = internal_size
        self.precision = precision
        self.scale = scale
        self.nullable = nullable

    @classmethod
    def from_cursor_description(cls, description_item: Any) -> Self:
        """Create a Column from an oracledb FetchInfo or a DB-API 7-tuple."""
        if hasattr(description_item, 'name'):
            return cls(
                name=description_item.name,
                type_code=getattr(description_item, 'type_code', None),
                display_size=getattr(description_item, 'display_size', None),
                internal_size=getattr(description_item, 'internal_size', None),
                precision=getattr(description_item, 'precision', None),
                scale=getattr(description_item, 'scale', None),
                nullable=getattr(description_item, 'null_ok', None),
            )
        item = tuple(description_item) + (None,) * 7
        return cls(*item[:7])

    def __repr__(self) -> str:
        return f'Column(name={self.name!r}, type_code={self.type_code!r})'

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': getattr(self.type_code, 'name', self.type_code),
            'display_size': self.display_size,
            'internal_size': self.internal_size,
            'precision': self.precision,
            'scale': self.scale,
            'nullable': self.nullable
        }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict]:
        return {col.name: col.to_dict() for col in columns}


def columns_from_cursor_description(cursor: Any) -> list[Column]:
    """Create Column objects from cursor description."""
    if cursor.description is None:
        return []
    return [Column.from_cursor_description(desc) for desc in cursor.description]


# Result envelope and output variants

@dataclass(frozen=True)
class RowSet:
    rows: Any
    columns: list[Column] = field(default_factory=list)


@dataclass(frozen=True)
class Scalar:
    value: Any


@dataclass(frozen=True)
class Count:
    rows: int


@dataclass(frozen=True)
class ParameterMap:
    values: dict[str, Any]


@dataclass(frozen=True)
class Document:
    """One synthetic document built from output parameters.

    `value` is the element tree for XML_DOCUMENT and the serialized text for
    XML_STRING and JSON_STRING.
    """
    return_type: ReturnType
    root: ET.Element
    value: ET.Element | str


Output = RowSet | Scalar | Count | ParameterMap | Document


@dataclass
class Result:
    """Envelope returned by both executors.

    `rows_affected` is populated only when `output` is a Count. A failed
    result never carries output.
    """
    success: bool
    message: str | None = None
    rows_affected: int | None = None
    output: Output | None = None

    @classmethod
    def ok(cls, output: Output) -> Self:
        rows_affected = output.rows if isinstance(output, Count) else None
        return cls(True, 'Success', rows_affected, output)

    @classmethod
    def failure(cls, message: str) -> Self:
        return cls(False, message)
