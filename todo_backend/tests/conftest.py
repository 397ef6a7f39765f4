import os

# Default to the memory backend so importing the app never needs a database
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from pymongo.errors import ServerSelectionTimeoutError  # noqa: E402

from src.api.main import create_app  # noqa: E402
from src.api.repositories import InMemoryRepository, Repository  # noqa: E402


class UnreachableRepository(Repository):
    """Repository whose every call fails the way pymongo does when the server is down."""

    def _fail(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")

    create = get = update = delete = list = connect = _fail


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def client(repo):
    return TestClient(create_app(repository=repo))


@pytest.fixture
def unreachable_repo():
    return UnreachableRepository()


@pytest.fixture
def broken_client(unreachable_repo):
    return TestClient(create_app(repository=unreachable_repo))
