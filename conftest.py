import pytest
from fastapi.testclient import TestClient

from api import create_app
from library import Library


@pytest.fixture
def lib():
    # Every test gets its own empty engine
    return Library(seed=False)


@pytest.fixture
def seeded_lib():
    return Library(seed=True)


@pytest.fixture
def book(lib):
    return lib.create_book("Dune", "Frank Herbert", "9780441172719", 1)


@pytest.fixture
def client(lib):
    return TestClient(create_app(lib))
