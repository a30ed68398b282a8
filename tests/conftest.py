import pytest

from phery.context import request_scope


@pytest.fixture(autouse=True)
def fresh_scope():
    """Give every test its own builder registry and globals."""
    with request_scope() as scope:
        yield scope
