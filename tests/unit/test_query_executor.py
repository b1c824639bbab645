import asyncio
import decimal

import oracledb
import pandas as pd
import pytest
from oraexec import Count, ExecuteType, InputParameter, QueryInput, QueryOptions
from oraexec import RowSet, Scalar, classify_execute_type, execute_query
from oraexec.exceptions import BindingError, ConnectionFailure, QueryError
from oraexec.options import pandas_numpy_data_loader
from tests.fixtures.mocks import column

CS = 'user/pw@localhost:1521/FREEPDB1'


@pytest.mark.parametrize(('sql', 'expected'), [
    ('SELECT * FROM t', ExecuteType.EXECUTE_READER),
    ('select 1 from dual', ExecuteType.EXECUTE_READER),
    ('   \n  Select id from t', ExecuteType.EXECUTE_READER),
    ('insert into t values (1)', ExecuteType.NON_QUERY),
    ('with x as (select 1 from dual) select * from x', ExecuteType.NON_QUERY),
    ('begin null; end;', ExecuteType.NON_QUERY),
])
def test_classify_auto(sql, expected):
    """Test AUTO resolves on a leading SELECT keyword only"""
    assert classify_execute_type(sql) is expected


def test_classify_explicit_passthrough():
    """Test explicit execute types are kept"""
    assert classify_execute_type('select 1 from dual', 'NonQuery') is ExecuteType.NON_QUERY
    assert classify_execute_type('update t set x = 1', ExecuteType.SCALAR) is ExecuteType.SCALAR


@pytest.mark.asyncio
async def test_insert_commits(fake_oracle):
    """Test a non-query commits and reports affected rows"""
    fake_oracle.connection.result_rowcount = 1
    query = QueryInput(
        'insert into MyTable (id, first_name, last_name) values (:id, :first_name, :last_name)',
        CS,
        [InputParameter('id', 3, 'Int32'),
         InputParameter('first_name', 'Matti', 'Varchar2'),
         InputParameter('last_name', 'Meikalainen', 'Varchar2')])

    result = await execute_query(query, QueryOptions(throw_error_on_failure=False))

    assert result.success is True
    assert result.message == 'Success'
    assert result.output == Count(1)
    assert result.rows_affected == 1
    assert fake_oracle.connection.commits == 1
    assert fake_oracle.connection.isolation_statements == ['SET TRANSACTION ISOLATION LEVEL SERIALIZABLE']

    statement, arguments = fake_oracle.connection.statements[0]
    assert statement == query.query
    assert {name: var.getvalue() for name, var in arguments.items()} == {
        'id': 3, 'first_name': 'Matti', 'last_name': 'Meikalainen'}


@pytest.mark.asyncio
async def test_select_returns_rows_without_commit(fake_oracle):
    """Test a reader returns rows in column order and never commits"""
    fake_oracle.connection.result_description = [
        column('ID', oracledb.DB_TYPE_NUMBER), column('FIRST_NAME'), column('LAST_NAME')]
    fake_oracle.connection.result_rows = [(decimal.Decimal(3), 'Matti', 'Meikalainen')]

    result = await execute_query(QueryInput('SELECT * FROM MyTable WHERE id = 3', CS))

    assert result.success is True
    assert isinstance(result.output, RowSet)
    assert result.output.rows == [{'ID': decimal.Decimal(3), 'FIRST_NAME': 'Matti',
                                   'LAST_NAME': 'Meikalainen'}]
    assert result.rows_affected is None
    assert fake_oracle.connection.commits == 0


@pytest.mark.asyncio
async def test_select_with_pandas_loader(fake_oracle):
    """Test rows can be shaped by a custom data loader"""
    fake_oracle.connection.result_description = [column('ID', oracledb.DB_TYPE_NUMBER)]
    fake_oracle.connection.result_rows = [(decimal.Decimal(1),), (None,)]

    result = await execute_query(QueryInput('select id from t', CS),
                                 QueryOptions(data_loader=pandas_numpy_data_loader))

    assert isinstance(result.output.rows, pd.DataFrame)
    assert list(result.output.rows['ID']) == [decimal.Decimal(1), '']


@pytest.mark.asyncio
async def test_scalar(fake_oracle):
    """Test scalar execution returns the first cell"""
    fake_oracle.connection.result_description = [column('CNT', oracledb.DB_TYPE_NUMBER)]
    fake_oracle.connection.result_rows = [(decimal.Decimal(2),)]

    result = await execute_query(QueryInput('select count(*) from t', CS, execute_type='Scalar'))

    assert result.output == Scalar(decimal.Decimal(2))
    assert fake_oracle.connection.commits == 0


@pytest.mark.asyncio
async def test_scalar_without_rows(fake_oracle):
    """Test scalar execution with no rows yields an empty string"""
    fake_oracle.connection.result_description = [column('NAME')]

    result = await execute_query(QueryInput('select name from t', CS, execute_type=ExecuteType.SCALAR))

    assert result.output == Scalar('')


@pytest.mark.asyncio
async def test_positional_binding(fake_oracle):
    """Test positional binding sends parameters in declaration order"""
    query = QueryInput(
        'insert into t (id, first_name, last_name) values (:p, :p, :p)', CS,
        [InputParameter('p', 1, 'Int32'),
         InputParameter('p', 'Matti', 'Varchar2'),
         InputParameter('p', 'Doe', 'Varchar2')])

    await execute_query(query, QueryOptions(bind_parameter_by_name=False))

    _, arguments = fake_oracle.connection.statements[0]
    assert [var.getvalue() for var in arguments] == [1, 'Matti', 'Doe']


@pytest.mark.asyncio
async def test_failure_returns_result_and_rolls_back(fake_oracle):
    """Test a failing statement rolls back and returns a failed Result"""
    fake_oracle.connection.error = oracledb.DatabaseError('ORA-00942: table or view does not exist')

    result = await execute_query(QueryInput('insert into missing values (1)', CS),
                                 QueryOptions(throw_error_on_failure=False))

    assert result.success is False
    assert 'ORA-00942' in result.message
    assert result.output is None
    assert fake_oracle.connection.rollbacks == 1
    assert fake_oracle.connection.commits == 0
    assert fake_oracle.engine.connections[0].closed
    assert fake_oracle.engine.disposed == 1


@pytest.mark.asyncio
async def test_failure_raises(fake_oracle):
    """Test the same failure raises when throw_error_on_failure is set"""
    fake_oracle.connection.error = oracledb.DatabaseError('ORA-00942: table or view does not exist')

    with pytest.raises(QueryError, match='ORA-00942') as excinfo:
        await execute_query(QueryInput('insert into missing values (1)', CS))

    assert excinfo.value.code == 'ORA-00942'
    assert fake_oracle.connection.rollbacks == 1
    assert fake_oracle.engine.disposed == 1


@pytest.mark.asyncio
async def test_binding_error_before_connect(fake_oracle):
    """Test a bad parameter fails before any connection is opened"""
    query = QueryInput('insert into t values (:id)', CS, [InputParameter('id', 1, 'Integer')])

    with pytest.raises(BindingError):
        await execute_query(query)

    assert fake_oracle.engine.connections == []
    assert fake_oracle.connection.statements == []


@pytest.mark.asyncio
async def test_connection_failure(fake_oracle):
    """Test connection errors follow the error policy and still release pools"""
    fake_oracle.engine.connect_error = oracledb.OperationalError('DPY-6005: cannot connect to database')

    result = await execute_query(QueryInput('select 1 from dual', CS),
                                 {'throw_error_on_failure': False})
    assert result.success is False
    assert 'DPY-6005' in result.message

    with pytest.raises(ConnectionFailure):
        await execute_query(QueryInput('select 1 from dual', CS))

    assert fake_oracle.engine.disposed == 2


@pytest.mark.asyncio
async def test_cancellation_propagates(fake_oracle):
    """Test cancellation is not converted and cleanup still runs"""
    fake_oracle.connection.error = asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await execute_query(QueryInput('update t set x = 1', CS),
                            QueryOptions(throw_error_on_failure=False))

    assert fake_oracle.connection.rollbacks == 1
    assert fake_oracle.engine.connections[0].closed
    assert fake_oracle.engine.disposed == 1


@pytest.mark.asyncio
async def test_pools_released_after_success(fake_oracle):
    """Test pools are released after every successful invocation"""
    await execute_query(QueryInput('update t set x = 1', CS))
    await execute_query(QueryInput('update t set x = 2', CS))

    assert fake_oracle.engine.disposed == 2
    assert all(cn.closed for cn in fake_oracle.engine.connections)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
