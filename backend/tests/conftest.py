import os

# Config must be in place before any backend module is imported.
os.environ.setdefault("JWT_SECRET", "test_secret")
os.environ.setdefault("DATABASE_URL", "postgresql://localhost/event_registration_test")

import pytest
from backend.gateway.server import create_app
from backend.tests.helpers import make_mock_conn, statements

ROUTE_MODULES = [
    "backend.auth_service.routes",
    "backend.auth_service.utils",
    "backend.events_service.routes",
    "backend.registration_service.routes",
]


@pytest.fixture
def app():
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor for every service.
    """
    mock_conn, mock_cursor = make_mock_conn()
    for module in ROUTE_MODULES:
        mocker.patch(f"{module}.get_db", return_value=mock_conn)
    return mock_conn, mock_cursor


@pytest.fixture
def executed_sql(mock_db):
    """Returns a callable listing every SQL statement the mocked cursor ran."""
    _, mock_cursor = mock_db

    return lambda: statements(mock_cursor)
