from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pandas as pd
from oraexec.types import Column, TransactionIsolationLevel

from libb import ConfigOptions, load_options

__all__ = [
    'QueryOptions',
    'ProcedureOptions',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'load_query_options',
    'load_procedure_options',
]


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Minimal data loader.

    Returns the drained row dictionaries unchanged.
    """
    if not data:
        return []
    return list(data)


def _empty_dataframe(columns) -> pd.DataFrame:
    """Create empty DataFrame with column metadata."""
    df = pd.DataFrame(columns=Column.get_names(columns))
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy.

    Always returns a DataFrame, never None, with columns preserved for empty results.
    Includes type information in the DataFrame.attrs attribute.
    """
    if not data:
        return _empty_dataframe(columns)

    df = pd.DataFrame.from_records(list(data), columns=Column.get_names(columns))
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


@dataclass
class _ExecutionOptions(ConfigOptions):
    """Options shared by both executors

    - timeout_seconds: Driver call timeout applied to every round trip (0 disables)
    - bind_parameter_by_name: Bind parameters by name, otherwise by position
    - throw_error_on_failure: Raise on failure, otherwise return a failed Result
    - use_pool: Whether the engine keeps a connection pool (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    """
    timeout_seconds: int = 30
    bind_parameter_by_name: bool = True
    throw_error_on_failure: bool = True
    use_pool: bool = False
    pool_max_connections: int = 5

    def __post_init__(self):
        if self.timeout_seconds is None or self.timeout_seconds < 0:
            raise ValueError('timeout_seconds must be a non-negative number of seconds')
        if self.pool_max_connections < 1:
            raise ValueError('pool_max_connections must be at least 1')


@dataclass
class QueryOptions(_ExecutionOptions):
    """Statement executor options

    isolation_level: Transaction isolation level; `Default` resolves to serializable.
    data_loader: Callable shaping drained rows, called as data_loader(rows, columns).
    """
    isolation_level: TransactionIsolationLevel | str = TransactionIsolationLevel.DEFAULT
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        super().__post_init__()
        try:
            self.isolation_level = TransactionIsolationLevel(self.isolation_level)
        except ValueError:
            # resolved to serializable when the transaction starts
            pass
        if self.data_loader is None:
            self.data_loader = iterdict_data_loader


@dataclass
class ProcedureOptions(_ExecutionOptions):
    """Procedure executor options
    """


def _normalize(cls: type, options: Any, config: Any = None, **kw: Any) -> Any:
    if isinstance(options, cls):
        return options
    if options is None:
        return cls(**kw)
    options_func = load_options(cls=cls)(lambda o, c: o)
    return options_func(options, config, **kw)


def load_query_options(options: 'QueryOptions | dict[str, Any] | str | None',
                       config: Any = None, **kw: Any) -> QueryOptions:
    """Build QueryOptions from an instance, dict, or config setting name.
    """
    return _normalize(QueryOptions, options, config, **kw)


def load_procedure_options(options: 'ProcedureOptions | dict[str, Any] | str | None',
                           config: Any = None, **kw: Any) -> ProcedureOptions:
    """Build ProcedureOptions from an instance, dict, or config setting name.
    """
    return _normalize(ProcedureOptions, options, config, **kw)
