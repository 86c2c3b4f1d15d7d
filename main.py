import subprocess
import sys
from typing import Any, Optional

import httpx
import typer

from config import settings
from utils.ui_helpers import (
    print_books,
    print_history,
    print_inventory,
    print_stats,
    print_users,
    set_output_mode,
)

app = typer.Typer(help="Library lending service CLI")


def get_client() -> httpx.Client:
    """HTTP client pointed at the running service."""
    return httpx.Client(base_url=settings.api_base_url, timeout=settings.http_timeout)


def _fail(message: str) -> None:
    print(f"Error: {message}")
    raise typer.Exit(code=1)


def _request(method: str, path: str, *, admin: bool = False, **kwargs) -> Any:
    """Call the service and unwrap its envelope; exits with status 1 on failure."""
    headers = {"X-API-Key": settings.api_key} if admin else {}
    try:
        with get_client() as client:
            response = client.request(method, path, headers=headers, **kwargs)
    except httpx.RequestError as e:
        _fail(f"Could not reach the library service at {settings.api_base_url} ({e})")

    try:
        payload = response.json()
    except ValueError:
        _fail(f"Unexpected response from service (HTTP {response.status_code})")

    if not payload.get("success", False):
        _fail(payload.get("message") or f"HTTP {response.status_code}")
    return payload.get("data"), payload.get("message", "")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (output mode)."""
    if output:
        set_output_mode(output)


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, help="Interface to bind"),
    port: int = typer.Option(settings.api_port, help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the HTTP API with uvicorn."""
    print(f"Starting library API on http://{host}:{port}")
    cmd = [sys.executable, "-m", "uvicorn", "api:serve_app", "--factory",
           "--host", host, "--port", str(port),
           "--log-level", settings.log_level.lower()]
    if reload:
        cmd.append("--reload")
    subprocess.run(cmd)


# --- Catalog ---
@app.command("books")
def cli_books(query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter by title or author")):
    """List books with their stock."""
    params = {"q": query} if query else None
    books, _ = _request("GET", "/api/books", params=params)
    print_books(books or [])


@app.command("add")
def cli_add(
    title: str,
    author: str,
    isbn: str,
    stock: int,
    image_url: Optional[str] = typer.Option(None, "--image-url", help="Cover image URL"),
):
    """Add a book to the catalog (admin)."""
    body = {"title": title, "author": author, "isbn": isbn, "stock": stock}
    if image_url:
        body["imageUrl"] = image_url
    book, _ = _request("POST", "/api/books", admin=True, json=body)
    print(f"Added: {book['title']} (id {book['id']}, {book['totalCopies']} copies)")


@app.command("set-stock")
def cli_set_stock(
    book_id: str,
    stock: int,
    total: Optional[int] = typer.Option(None, "--total", help="New total copies"),
):
    """Update a book's stock and optionally its total copies (admin)."""
    body = {"stock": stock}
    if total is not None:
        body["totalCopies"] = total
    book, _ = _request("PUT", f"/api/books/{book_id}/stock", admin=True, json=body)
    print(f"{book['title']}: stock {book['stock']}/{book['totalCopies']}")


@app.command("delete")
def cli_delete(book_id: str):
    """Delete a book that has no active borrows (admin)."""
    _, message = _request("DELETE", f"/api/books/{book_id}", admin=True)
    print(message)


# --- Lending ---
@app.command("borrow")
def cli_borrow(user_id: str, book_id: str, user_name: str):
    """Borrow a book for a user."""
    data, message = _request(
        "POST", "/api/borrow", json={"userId": user_id, "bookId": book_id, "userName": user_name}
    )
    print(f"{message}: {data['book']['title']} (stock left: {data['book']['stock']})")


@app.command("return")
def cli_return(user_id: str, book_id: str):
    """Return a borrowed book."""
    data, message = _request("POST", "/api/return", json={"userId": user_id, "bookId": book_id})
    print(f"{message}: {data['book']['title']} (stock now: {data['book']['stock']})")


# --- Admin reports ---
@app.command("stats")
def cli_stats():
    """Show library statistics (admin)."""
    stats, _ = _request("GET", "/api/admin/statistics", admin=True)
    print_stats(stats or {})


@app.command("history")
def cli_history():
    """Show the borrow history, most recent first (admin)."""
    entries, _ = _request("GET", "/api/admin/history", admin=True)
    print_history(entries or [])


@app.command("users")
def cli_users():
    """List users and the books they hold (admin)."""
    users, _ = _request("GET", "/api/admin/users", admin=True)
    print_users(users or [])


@app.command("inventory")
def cli_inventory():
    """Show stock levels per title (admin)."""
    rows, _ = _request("GET", "/api/admin/inventory", admin=True)
    print_inventory(rows or [])


if __name__ == "__main__":
    app()
