import asyncio
import logging
import pathlib
import sys

import oraexec
import pytest

from libb import Setting

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
sys.path.insert(0, HERE)
sys.path.append('..')
import config

logger = logging.getLogger(__name__)


def _docker_available():
    try:
        import docker
        docker.from_env().ping()
        return True
    except Exception:
        return False


def run_statement(sql, *parameters):
    """Execute one statement against the container, raising on failure."""
    return asyncio.run(oraexec.execute_query(
        oraexec.QueryInput(sql, config.connection_string(), list(parameters),
                           oraexec.ExecuteType.NON_QUERY),
        'execution', config))


@pytest.fixture(scope='session')
def oracle_docker(request):
    """Session-scoped Oracle container using testcontainers.

    Testcontainers automatically:
    - Assigns a random available port
    - Waits for the database to be ready
    - Handles cleanup when the session ends
    """
    if not _docker_available():
        pytest.skip('Docker is not available')

    from testcontainers.oracle import OracleDbContainer

    container = OracleDbContainer(
        image=config.oracle.image,
        oracle_password=config.oracle.system_password,
        username=config.oracle.username,
        password=config.oracle.password,
    )

    try:
        container.start()

        Setting.unlock()
        config.oracle.hostname = container.get_container_host_ip()
        config.oracle.port = int(container.get_exposed_port(1521))
        Setting.lock()

        logger.info(
            f'Oracle container started at '
            f'{config.oracle.hostname}:{config.oracle.port}'
        )

        def finalizer():
            try:
                container.stop()
                logger.info('Oracle container stopped')
            except Exception as e:
                logger.warning(f'Error stopping container: {e}')

        request.addfinalizer(finalizer)
        return container

    except Exception as e:
        logger.error(f'Error setting up oracle container: {e}')
        try:
            container.stop()
        except Exception:
            pass
        raise


def stage_test_data():
    run_statement("""
begin
    execute immediate 'drop table test_table';
exception
    when others then
        if sqlcode != -942 then
            raise;
        end if;
end;
""")
    run_statement("""
create table test_table (
    id number(10) not null primary key,
    first_name varchar2(64),
    last_name varchar2(64),
    amount number(20, 4),
    created date,
    notes clob,
    payload blob
)
""")
    for id_, first, last in ((1, 'Alice', 'Smith'), (2, 'Bob', 'Jones')):
        run_statement(
            'insert into test_table (id, first_name, last_name) values (:id, :first_name, :last_name)',
            oraexec.InputParameter('id', id_, 'Int32'),
            oraexec.InputParameter('first_name', first, 'Varchar2'),
            oraexec.InputParameter('last_name', last, 'Varchar2'))


def stage_test_procedures():
    run_statement("""
create or replace procedure greet_person (
    p_first in varchar2,
    p_last in varchar2,
    p_greeting out varchar2,
    p_length out number
) as
begin
    p_greeting := 'Hello ' || p_first || ' ' || p_last;
    p_length := length(p_greeting);
end;
""")
    run_statement("""
create or replace procedure build_payload (
    p_chunks in number,
    p_blob out blob
) as
begin
    dbms_lob.createtemporary(p_blob, true);
    for i in 1 .. p_chunks loop
        dbms_lob.writeappend(p_blob, 2000, utl_raw.copies(utl_raw.cast_to_raw('ab'), 1000));
    end loop;
end;
""")
    run_statement("""
create or replace procedure fetch_notes (
    p_flag in number,
    p_notes out clob
) as
begin
    if p_flag = 1 then
        p_notes := 'some notes';
    else
        p_notes := null;
    end if;
end;
""")


@pytest.fixture
def oracle_conn(oracle_docker):
    """Connection string fixture with function scope for clean tests.
    Each test gets reset test data.
    """
    stage_test_data()
    stage_test_procedures()
    return config.connection_string()
