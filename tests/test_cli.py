import json
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

import main
from api import create_app
from main import app
from utils.ui_helpers import OUTPUT_MODE_ENV

runner = CliRunner()


@pytest.fixture
def service(lib, monkeypatch):
    """Point the CLI at an in-process app backed by the test engine."""
    web_app = create_app(lib)
    monkeypatch.setattr(main, "get_client", lambda: TestClient(web_app))
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")
    return lib


def test_books_empty(service):
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_books_lists_stock(service):
    service.create_book("Dune", "Frank Herbert", "1", 3)
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "1. Dune by Frank Herbert [3/3, in_stock]" in result.stdout


def test_books_query(service):
    service.create_book("Dune", "Frank Herbert", "1", 3)
    service.create_book("Emma", "Jane Austen", "2", 1)
    result = runner.invoke(app, ["books", "--query", "austen"])
    assert "Emma" in result.stdout
    assert "Dune" not in result.stdout


def test_books_json_output(service):
    service.create_book("Dune", "Frank Herbert", "1", 3)
    result = runner.invoke(app, ["-o", "json", "books"])
    assert result.exit_code == 0
    books = json.loads(result.stdout)
    assert books[0]["title"] == "Dune"


def test_add_book(service):
    result = runner.invoke(app, ["add", "Dune", "Frank Herbert", "9780441172719", "2"])
    assert result.exit_code == 0
    assert "Added: Dune (id 1, 2 copies)" in result.stdout
    assert service.get_book("1")["totalCopies"] == 2


def test_add_duplicate_fails(service):
    service.create_book("Dune", "Frank Herbert", "9780441172719", 1)
    result = runner.invoke(app, ["add", "Dune", "Frank Herbert", "9780441172719", "2"])
    assert result.exit_code == 1
    assert "Error: Book with this ISBN already exists" in result.stdout


def test_set_stock(service):
    service.create_book("Dune", "Frank Herbert", "1", 2)
    result = runner.invoke(app, ["set-stock", "1", "4", "--total", "4"])
    assert result.exit_code == 0
    assert "Dune: stock 4/4" in result.stdout


def test_delete(service):
    service.create_book("Dune", "Frank Herbert", "1", 2)
    result = runner.invoke(app, ["delete", "1"])
    assert result.exit_code == 0
    assert "Book deleted successfully" in result.stdout
    assert service.list_books() == []


def test_borrow_and_return(service):
    service.create_book("Dune", "Frank Herbert", "1", 1)

    result = runner.invoke(app, ["borrow", "u1", "1", "Alice"])
    assert result.exit_code == 0
    assert "Book borrowed successfully: Dune (stock left: 0)" in result.stdout

    result = runner.invoke(app, ["borrow", "u2", "1", "Bob"])
    assert result.exit_code == 1
    assert "Error: Book is not available for borrowing" in result.stdout

    result = runner.invoke(app, ["return", "u1", "1"])
    assert result.exit_code == 0
    assert "Book returned successfully: Dune (stock now: 1)" in result.stdout


def test_stats(service):
    service.create_book("Dune", "Frank Herbert", "1", 2)
    service.borrow("u1", "1", "Alice")
    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total Copies: 2" in result.stdout
    assert "Utilization: 50.0%" in result.stdout


def test_history_and_users(service):
    service.create_book("Dune", "Frank Herbert", "1", 2)
    service.borrow("u1", "1", "Alice")

    result = runner.invoke(app, ["history"])
    assert result.exit_code == 0
    assert "borrowed: Alice - Dune" in result.stdout

    result = runner.invoke(app, ["users"])
    assert "u1 (Alice): 1" in result.stdout


def test_inventory(service):
    service.create_book("Dune", "Frank Herbert", "1", 0)
    result = runner.invoke(app, ["inventory"])
    assert result.exit_code == 0
    assert "1. Dune: 0/0 available, 0 borrowed (out_of_stock)" in result.stdout


def test_service_unreachable(monkeypatch):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    def failing_client():
        transport = httpx.MockTransport(refuse)
        return httpx.Client(transport=transport, base_url="http://library.invalid")

    monkeypatch.setattr(main, "get_client", failing_client)
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 1
    assert "Could not reach the library service" in result.stdout


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--port", "8123"])
    assert result.exit_code == 0
    assert "Starting library API on" in result.stdout
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:serve_app" in args
    assert "--factory" in args
    assert "--host" in args
    assert args[args.index("--port") + 1] == "8123"
