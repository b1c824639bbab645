from types import SimpleNamespace

import oracledb
import pytest
from oraexec.exceptions import BindingError, ConnectionFailure, QueryError
from oraexec.exceptions import IntegrityViolationError, error_code
from oraexec.exceptions import handle_failure, translate_error


def test_error_code_from_driver_error_object():
    """Test the vendor code is read from the driver's error object"""
    error = SimpleNamespace(full_code='ORA-00942', message='table or view does not exist')
    exc = oracledb.DatabaseError(error)
    assert error_code(exc) == 'ORA-00942'


def test_error_code_from_message():
    """Test the vendor code is found in the message text"""
    assert error_code(RuntimeError('ORA-01017: invalid credential')) == 'ORA-01017'
    assert error_code(RuntimeError('DPY-6005: cannot connect')) == 'DPY-6005'
    assert error_code(RuntimeError('no code here')) is None
    assert error_code(QueryError('boom', 'ORA-00001')) == 'ORA-00001'


def test_translate_error():
    """Test driver errors map onto the error taxonomy"""
    integrity = translate_error(oracledb.IntegrityError('ORA-00001: unique constraint violated'))
    assert isinstance(integrity, IntegrityViolationError)
    assert isinstance(integrity, QueryError)
    assert integrity.code == 'ORA-00001'

    connection = translate_error(oracledb.OperationalError('DPY-6005: cannot connect'))
    assert isinstance(connection, ConnectionFailure)

    query = translate_error(oracledb.DatabaseError('ORA-00942: table or view does not exist'))
    assert type(query) is QueryError
    assert 'ORA-00942' in str(query)

    binding = BindingError('bad type')
    assert translate_error(binding) is binding


def test_handle_failure_raises():
    """Test the error is raised with the original chained"""
    original = oracledb.DatabaseError('ORA-00942: table or view does not exist')
    with pytest.raises(QueryError, match='ORA-00942') as excinfo:
        handle_failure(original, throw_error_on_failure=True)
    assert excinfo.value.__cause__ is original


def test_handle_failure_returns_failed_result():
    """Test the same error is returned as a failed Result"""
    original = oracledb.DatabaseError('ORA-00942: table or view does not exist')
    result = handle_failure(original, throw_error_on_failure=False)

    assert result.success is False
    assert 'ORA-00942' in result.message
    assert result.output is None


def test_error_policy_symmetry():
    """Test raised and returned errors carry the same message"""
    original = RuntimeError('ORA-06550: line 1, column 7')
    result = handle_failure(original, throw_error_on_failure=False)
    with pytest.raises(QueryError) as excinfo:
        handle_failure(original, throw_error_on_failure=True)
    assert str(excinfo.value) == result.message


if __name__ == '__main__':
    __import__('pytest').main([__file__])
