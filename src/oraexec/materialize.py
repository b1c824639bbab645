"""
Result materialization: driver-native values to portable cell values.

Each native value is classified into one CellKind and converted once. Driver
null markers and LOB locators never leave this module.

Cell policy:
- NULL: None, except NUMBER nulls which become '' (kept for compatibility
  with existing consumers)
- STRING: the string
- DECIMAL: Decimal rounded to 28 significant digits
- DATETIME: the value's default text rendering
- BINARY: base64 text; BLOBs are streamed in fixed-size chunks
- CLOB: the fully read text
- PASSTHROUGH: unchanged
"""
import base64
import copy
import datetime
import decimal
import inspect
import json
import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from enum import Enum
from typing import Any

import oracledb
from oraexec.exceptions import MaterializationError
from oraexec.types import Document, ParameterMap, ReturnType

logger = logging.getLogger(__name__)

DECIMAL_PRECISION = 28
BLOB_CHUNK_SIZE = 81920
DOCUMENT_ROOT = 'Root'

_DECIMAL_CONTEXT = decimal.Context(prec=DECIMAL_PRECISION)

LOB_TYPES = (oracledb.LOB, oracledb.AsyncLOB)
CHARACTER_LOB_TYPES = (oracledb.DB_TYPE_CLOB, oracledb.DB_TYPE_NCLOB)
NUMERIC_DRIVER_TYPES = (oracledb.DB_TYPE_NUMBER, decimal.Decimal, int)

# XML 1.0 NCName: element names without a namespace prefix
_NAME_START_CHARS = (
    'A-Z_a-z\u00C0-\u00D6\u00D8-\u00F6\u00F8-\u02FF\u0370-\u037D\u037F-\u1FFF'
    '\u200C-\u200D\u2070-\u218F\u2C00-\u2FEF\u3001-\uD7FF\uF900-\uFDCF'
    '\uFDF0-\uFFFD\U00010000-\U000EFFFF'
    )
_NAME_CHARS = _NAME_START_CHARS + '.0-9\u00B7\u0300-\u036F\u203F-\u2040-'
_XML_NAME_REGEX = re.compile(f'[{_NAME_START_CHARS}][{_NAME_CHARS}]*')


class CellKind(Enum):
    NULL = 'null'
    STRING = 'string'
    DECIMAL = 'decimal'
    DATETIME = 'datetime'
    BINARY = 'binary'
    CLOB = 'clob'
    PASSTHROUGH = 'passthrough'


def classify(value: Any) -> CellKind:
    """Classify a driver-native value into its cell kind.
    """
    if value is None:
        return CellKind.NULL
    if isinstance(value, LOB_TYPES):
        if value.type in CHARACTER_LOB_TYPES:
            return CellKind.CLOB
        return CellKind.BINARY
    if isinstance(value, str):
        return CellKind.STRING
    if isinstance(value, decimal.Decimal):
        return CellKind.DECIMAL
    if isinstance(value, datetime.date):
        return CellKind.DATETIME
    if isinstance(value, bytes | bytearray):
        return CellKind.BINARY
    return CellKind.PASSTHROUGH


def is_numeric_type(driver_type: Any) -> bool:
    return any(driver_type is t for t in NUMERIC_DRIVER_TYPES)


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def read_blob(lob: Any, chunk_size: int = BLOB_CHUNK_SIZE) -> str | None:
    """Stream a binary LOB into a buffer of its declared length and base64 it.

    Empty LOBs yield None. A read returning no data before the declared
    length is reached raises MaterializationError.
    """
    length = await _maybe_await(lob.size())
    if not length:
        return None

    buffer = bytearray(length)
    offset = 0
    while offset < length:
        amount = min(chunk_size, length - offset)
        chunk = await _maybe_await(lob.read(offset + 1, amount))
        if not chunk:
            raise MaterializationError(
                f'Unexpected end of BLOB stream after {offset} of {length} bytes')
        chunk = chunk[:amount]
        buffer[offset:offset + len(chunk)] = chunk
        offset += len(chunk)

    logger.debug(f'Read BLOB of {length} bytes')
    return base64.b64encode(bytes(buffer)).decode('ascii')


async def read_clob(lob: Any) -> str:
    """Read a character LOB in full."""
    text = await _maybe_await(lob.read())
    return text or ''


async def materialize(value: Any, driver_type: Any = None) -> Any:
    """Convert one driver-native value into its cell value.

    `driver_type` is the column type code or bound driver type; it decides
    how a NULL is rendered.
    """
    kind = classify(value)

    if kind is CellKind.NULL:
        return '' if is_numeric_type(driver_type) else None
    if kind is CellKind.STRING:
        return value
    if kind is CellKind.DECIMAL:
        return _DECIMAL_CONTEXT.plus(value)
    if kind is CellKind.DATETIME:
        return str(value)
    if kind is CellKind.CLOB:
        return await read_clob(value)
    if kind is CellKind.BINARY:
        if isinstance(value, LOB_TYPES):
            return await read_blob(value)
        return base64.b64encode(bytes(value)).decode('ascii')
    return value


async def drain_rows(cursor: Any) -> tuple[list[dict[str, Any]], list]:
    """Fetch every row as a dict of column name to cell value.

    Fields follow the cursor's column order, identical for every row.
    """
    columns = cursor.columns
    rows = await cursor.fetchall()
    data = []
    for row in rows:
        data.append({
            column.name: await materialize(value, column.type_code)
            for column, value in zip(columns, row)
            })
    logger.debug(f'Drained {len(data)} rows with {len(columns)} columns')
    return data, columns


async def drain_scalar(cursor: Any) -> Any:
    """Return the first column of the first row; no rows yields ''.
    """
    row = await cursor.fetchone()
    if row is None:
        return ''
    columns = cursor.columns
    type_code = columns[0].type_code if columns else None
    return await materialize(row[0], type_code)


async def drain_parameters(bound: Sequence[Any], variables: Sequence[Any]) -> ParameterMap:
    """Collect output parameter values by name; inputs are never included.
    """
    values: dict[str, Any] = {}
    for parameter, var in zip(bound, variables):
        if not parameter.is_output:
            continue
        try:
            values[parameter.name] = await materialize(var.getvalue(), parameter.driver_type)
        except MaterializationError:
            raise
        except (TypeError, ValueError) as exc:
            raise MaterializationError(
                f'Cannot materialize output parameter {parameter.name!r}: {exc}') from exc
    return ParameterMap(values)


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, decimal.Decimal):
        return format(value, 'f')
    return str(value)


def build_document(values: dict[str, Any]) -> ET.Element:
    """Build the synthetic document with one child element per output parameter.

    A None value leaves its element empty. Names that are not valid XML
    element names raise MaterializationError.
    """
    root = ET.Element(DOCUMENT_ROOT)
    for name, value in values.items():
        if not isinstance(name, str) or not _XML_NAME_REGEX.fullmatch(name):
            raise MaterializationError(
                f'Output parameter name {name!r} is not a valid XML element name')
        element = ET.SubElement(root, name)
        if value is not None:
            element.text = _to_text(value)
    return root


def _document_to_json(root: ET.Element) -> dict[str, Any] | None:
    """Element children as a JSON object, omitting the root.

    Elements without text become null; repeated names become arrays. A root
    without children becomes null.
    """
    if len(root) == 0:
        return None
    data: dict[str, Any] = {}
    for element in root:
        value = element.text
        if element.tag in data:
            existing = data[element.tag]
            if not isinstance(existing, list):
                data[element.tag] = [existing]
            data[element.tag].append(value)
        else:
            data[element.tag] = value
    return data


def render_document(root: ET.Element, return_type: ReturnType) -> Document:
    """Render the synthetic document in the requested syntax.
    """
    if return_type is ReturnType.XML_DOCUMENT:
        return Document(return_type, root, root)

    if return_type is ReturnType.XML_STRING:
        tree = copy.deepcopy(root)
        ET.indent(tree, space='  ')
        return Document(return_type, root, ET.tostring(tree, encoding='unicode'))

    if return_type is ReturnType.JSON_STRING:
        text = json.dumps(_document_to_json(root), ensure_ascii=False, separators=(',', ':'))
        return Document(return_type, root, text)

    raise MaterializationError(f'Unsupported return type for document: {return_type}')
