import threading
from concurrent.futures import ThreadPoolExecutor

from errors import AlreadyBorrowed, BorrowLimitReached, DuplicateIsbn, LibraryError, OutOfStock


def _run_all(calls, workers=16):
    """Run callables concurrently; return (results, errors) in submission order."""
    barrier = threading.Barrier(min(workers, len(calls)))
    results, errors = [], []

    def wrap(call):
        def run():
            try:
                barrier.wait(timeout=5)
            except threading.BrokenBarrierError:
                pass
            return call()
        return run

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(wrap(call)) for call in calls]
        for future in futures:
            try:
                results.append(future.result(timeout=10))
            except LibraryError as e:
                errors.append(e)
    return results, errors


def test_concurrent_borrows_never_oversell(lib):
    book = lib.create_book("Dune", "Frank Herbert", "1", 3)
    calls = [lambda n=n: lib.borrow(f"u{n}", book["id"], f"User {n}") for n in range(16)]

    results, errors = _run_all(calls)

    assert len(results) == 3
    assert len(errors) == 13
    assert all(isinstance(e, OutOfStock) for e in errors)
    final = lib.get_book(book["id"])
    assert final["stock"] == 0
    assert final["borrowedCount"] == 3
    assert len(lib.get_history()) == 3


def test_concurrent_same_user_same_book(lib):
    book = lib.create_book("Dune", "Frank Herbert", "1", 10)
    calls = [lambda: lib.borrow("u1", book["id"], "Alice") for _ in range(8)]

    results, errors = _run_all(calls)

    assert len(results) == 1
    assert all(isinstance(e, AlreadyBorrowed) for e in errors)
    assert lib.get_book(book["id"])["stock"] == 9
    assert lib.get_user("u1")["borrowedBooks"] == [book["id"]]


def test_concurrent_borrow_limit_across_titles(lib):
    ids = [lib.create_book(f"Book {n}", "Author", str(n), 5)["id"] for n in range(6)]
    calls = [lambda book_id=book_id: lib.borrow("u1", book_id, "Alice") for book_id in ids]

    results, errors = _run_all(calls)

    assert len(results) == 2
    assert all(isinstance(e, BorrowLimitReached) for e in errors)
    user = lib.get_user("u1")
    assert len(user["borrowedBooks"]) == 2
    for book_id in ids:
        held = book_id in user["borrowedBooks"]
        assert lib.get_book(book_id)["stock"] == (4 if held else 5)


def test_concurrent_create_same_isbn(lib):
    calls = [lambda n=n: lib.create_book(f"Copy {n}", "Author", "9780441172719", 1) for n in range(8)]

    results, errors = _run_all(calls)

    assert len(results) == 1
    assert all(isinstance(e, DuplicateIsbn) for e in errors)
    assert len(lib.list_books()) == 1


def test_borrow_return_churn_keeps_invariants(lib):
    book = lib.create_book("Dune", "Frank Herbert", "1", 2)

    def cycle(user_id):
        def run():
            for _ in range(25):
                try:
                    lib.borrow(user_id, book["id"], user_id)
                except OutOfStock:
                    continue
                lib.return_book(user_id, book["id"])
            return user_id
        return run

    results, errors = _run_all([cycle(f"u{n}") for n in range(6)], workers=6)

    assert errors == []
    assert len(results) == 6
    final = lib.get_book(book["id"])
    assert final["stock"] == 2
    assert final["borrowedCount"] == 0
    history = lib.get_history()
    assert sum(1 for h in history if h["action"] == "borrowed") == sum(
        1 for h in history if h["action"] == "returned"
    )
    assert all(u["borrowedBooks"] == [] for u in lib.list_users())
