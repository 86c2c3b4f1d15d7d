import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def print_books(books: List[Dict[str, Any]]) -> None:
    """Print books in the current output mode.
    - plain: 'id. Title by Author [stock/totalCopies, availability]' lines
    - json: the book dictionaries as returned by the service
    - rich: a table
    """
    if not books:
        print("No books in library.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(books)
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Stock", justify="right")
        table.add_column("Availability")
        for b in books:
            table.add_row(
                str(b.get("id", "")),
                b.get("title", ""),
                b.get("author", ""),
                f"{b.get('stock', 0)}/{b.get('totalCopies', 0)}",
                b.get("availability", ""),
            )
        _console.print(table)
    else:
        for b in books:
            print(
                f"{b.get('id', '')}. {b.get('title', '')} by {b.get('author', '')} "
                f"[{b.get('stock', 0)}/{b.get('totalCopies', 0)}, {b.get('availability', '')}]"
            )


def print_stats(stats: Dict[str, Any]) -> None:
    if not stats:
        print("No statistics available.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(stats)
    elif mode == "rich":
        content = (
            f"[bold]Total Copies:[/] {stats.get('totalBooks', 0)}\n"
            f"[bold]Unique Titles:[/] {stats.get('uniqueTitles', 0)}\n"
            f"[bold]Borrowed:[/] {stats.get('borrowedBooks', 0)}\n"
            f"[bold]Utilization:[/] {stats.get('utilizationRate', 0)}%"
        )
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Copies: {stats.get('totalBooks', 0)}")
        print(f"Unique Titles: {stats.get('uniqueTitles', 0)}")
        print(f"Borrowed: {stats.get('borrowedBooks', 0)}")
        print(f"Utilization: {stats.get('utilizationRate', 0)}%")


def print_history(entries: List[Dict[str, Any]]) -> None:
    if not entries:
        print("No borrow history.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(entries)
    elif mode == "rich":
        table = Table(title="🕘 History", header_style="bold cyan")
        table.add_column("Action")
        table.add_column("User")
        table.add_column("Book")
        table.add_column("Borrowed")
        table.add_column("Returned")
        for e in entries:
            table.add_row(
                e.get("action", ""),
                e.get("userName", ""),
                e.get("bookTitle", ""),
                e.get("borrowedDate", ""),
                e.get("returnDate", "") or "-",
            )
        _console.print(table)
    else:
        for e in entries:
            when = e.get("returnDate") if e.get("action") == "returned" else e.get("borrowedDate")
            print(f"{when} {e.get('action', '')}: {e.get('userName', '')} - {e.get('bookTitle', '')}")


def print_users(users: List[Dict[str, Any]]) -> None:
    if not users:
        print("No users yet.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(users)
    elif mode == "rich":
        table = Table(title="👤 Users", header_style="bold cyan")
        table.add_column("ID", style="magenta")
        table.add_column("Name")
        table.add_column("Borrowed Books")
        for u in users:
            table.add_row(u.get("id", ""), u.get("name") or "", ", ".join(u.get("borrowedBooks", [])) or "-")
        _console.print(table)
    else:
        for u in users:
            held = ", ".join(u.get("borrowedBooks", [])) or "none"
            print(f"{u.get('id', '')} ({u.get('name') or '?'}): {held}")


def print_inventory(rows: List[Dict[str, Any]]) -> None:
    if not rows:
        print("No books in library.")
        return

    mode = get_output_mode()
    if mode == "json":
        _print_json(rows)
    elif mode == "rich":
        table = Table(title="📦 Inventory", header_style="bold cyan")
        for col in ("ID", "Title", "Stock", "Total", "Borrowed", "Status"):
            table.add_column(col)
        styles = {"out_of_stock": "red", "low_stock": "yellow", "in_stock": "green"}
        for r in rows:
            status = r.get("availability", "")
            table.add_row(
                str(r.get("id", "")),
                r.get("title", ""),
                str(r.get("stock", 0)),
                str(r.get("totalCopies", 0)),
                str(r.get("borrowed", 0)),
                f"[{styles.get(status, 'white')}]{status}[/]",
            )
        _console.print(table)
    else:
        for r in rows:
            print(
                f"{r.get('id', '')}. {r.get('title', '')}: {r.get('stock', 0)}/{r.get('totalCopies', 0)} "
                f"available, {r.get('borrowed', 0)} borrowed ({r.get('availability', '')})"
            )
