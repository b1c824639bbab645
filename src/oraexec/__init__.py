"""
Execute ad-hoc SQL statements and stored procedures against Oracle.

Results are materialized into portable forms: row dictionaries, scalars,
affected-row counts, output-parameter maps, or a synthetic JSON/XML document.

    result = await oraexec.execute_query(
        oraexec.QueryInput(
            query='insert into t (id, name) values (:id, :name)',
            connection_string='user/password@localhost:1521/FREEPDB1',
            parameters=[
                oraexec.InputParameter('id', 3, oraexec.ParameterType.INT32),
                oraexec.InputParameter('name', 'Matti', oraexec.ParameterType.VARCHAR2),
            ]),
        oraexec.QueryOptions(throw_error_on_failure=False))
"""
__version__ = '0.1.0'

from oraexec.connection import release_all_pools
from oraexec.exceptions import BindingError, ConnectionFailure, DatabaseError
from oraexec.exceptions import IntegrityViolationError, MaterializationError
from oraexec.exceptions import QueryError
from oraexec.options import ProcedureOptions, QueryOptions
from oraexec.options import iterdict_data_loader, pandas_numpy_data_loader
from oraexec.procedure import ProcedureInput, ProcedureOutput, execute_procedure
from oraexec.query import QueryInput, classify_execute_type, execute_query
from oraexec.types import Column, CommandType, Count, Document, ExecuteType
from oraexec.types import InputParameter, IsolationLevel, OutputParameter
from oraexec.types import ParameterDirection, ParameterMap, ParameterType
from oraexec.types import QueryParameter, Result, ReturnType, RowSet, Scalar
from oraexec.types import TransactionIsolationLevel, resolve_isolation_level

__all__ = [
    'execute_query',
    'execute_procedure',
    'release_all_pools',
    'classify_execute_type',
    'resolve_isolation_level',
    'QueryInput',
    'QueryOptions',
    'ProcedureInput',
    'ProcedureOutput',
    'ProcedureOptions',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'InputParameter',
    'OutputParameter',
    'QueryParameter',
    'ParameterType',
    'ParameterDirection',
    'ExecuteType',
    'CommandType',
    'ReturnType',
    'TransactionIsolationLevel',
    'IsolationLevel',
    'Column',
    'Result',
    'RowSet',
    'Scalar',
    'Count',
    'ParameterMap',
    'Document',
    'DatabaseError',
    'ConnectionFailure',
    'BindingError',
    'QueryError',
    'IntegrityViolationError',
    'MaterializationError',
]
