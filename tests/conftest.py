import pathlib
import site

import pytest
from oraexec import connection

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_engine_registry():
    """Clear the engine registry before and after each test to ensure test isolation."""
    connection._engine_registry.clear()
    yield
    connection._engine_registry.clear()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.oracle',
]
