import pytest

from fakes import FakeRefresher, FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def refresher() -> FakeRefresher:
    return FakeRefresher()
