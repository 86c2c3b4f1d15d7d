import logging
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal
from functools import wraps
from typing import Any, Dict, Iterator, List, Optional

from book import BorrowRecord, availability
from catalog import CatalogStore
from config import settings
from errors import (
    AlreadyBorrowed,
    BorrowLimitReached,
    HasActiveBorrows,
    InvalidStock,
    InvalidTotal,
    LibraryError,
    MissingFields,
    NotBorrowed,
    OutOfStock,
    StockExceedsAvailable,
    TotalBelowBorrowed,
)
from ledger import BorrowLedger
from locks import KeyedLock
from registry import UserRegistry
from utils.validators import TextValidator, parse_count

logger = logging.getLogger(__name__)


def _logged(operation: str):
    """Log rejected operations with their error code, then re-raise."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except LibraryError as e:
                logger.warning(f"{operation} rejected: {e.code} - {e.message}")
                raise
        return wrapper
    return decorator


class Library:
    """Lending engine: books, borrow/return transactions and the history feed.

    Every mutating call is all-or-nothing. Validation and conflict checks run
    before anything is written, and the records an operation touches are
    locked for its whole duration: the book first, then the user.
    Results are plain dictionaries in the service's JSON shape, built while
    the record's lock is still held.
    """

    def __init__(self, seed: Optional[bool] = None, max_borrowed_books: Optional[int] = None) -> None:
        self.catalog = CatalogStore()
        self.ledger = BorrowLedger()
        self.users = UserRegistry()
        self.max_borrowed_books = (
            settings.max_borrowed_books if max_borrowed_books is None else max_borrowed_books
        )
        self._book_locks = KeyedLock()
        self._user_locks = KeyedLock()

        should_seed = settings.seed_catalog if seed is None else seed
        if should_seed:
            self.catalog.seed()
            logger.info(f"Seed catalog loaded: {len(self.catalog)} books")

    @contextmanager
    def _lock_book_and_user(self, book_id: str, user_id: str) -> Iterator[None]:
        with self._book_locks.hold(book_id), self._user_locks.hold(user_id):
            yield

    # ------------------------- Catalog ------------------------- #
    def list_books(self, query: Optional[str] = None) -> List[Dict[str, Any]]:
        """All books in insertion order, optionally filtered by title/author substring."""
        needle = (query or "").strip().lower()
        result = []
        for book in self.catalog.all():
            if needle and needle not in book.title.lower() and needle not in book.author.lower():
                continue
            with self._book_locks.hold(book.id):
                result.append(book.to_dict())
        return result

    @_logged("get_book")
    def get_book(self, book_id: str) -> Dict[str, Any]:
        book = self.catalog.require(book_id)
        with self._book_locks.hold(book.id):
            return book.to_dict()

    @_logged("create_book")
    def create_book(self, title: Optional[str], author: Optional[str], isbn: Optional[str],
                    stock: Any, image_url: Optional[str] = None) -> Dict[str, Any]:
        missing = TextValidator.missing_text_fields(title=title, author=author, isbn=isbn)
        missing += TextValidator.missing_fields(stock=stock)
        if missing:
            raise MissingFields(missing)
        copies = parse_count(stock)
        if copies is None or copies < 0:
            raise InvalidStock()

        book = self.catalog.create(
            title=title,
            author=author,
            isbn=isbn,
            stock=copies,
            image_url=image_url or None,
        )
        logger.info(f"Book created: id={book.id} isbn={book.isbn} copies={copies}")
        with self._book_locks.hold(book.id):
            return book.to_dict()

    @_logged("update_stock")
    def update_stock(self, book_id: str, stock: Any, total_copies: Any = None) -> Dict[str, Any]:
        """Set a book's available stock and, optionally, its total copies.

        ``total_copies`` is validated first and becomes the ceiling the new
        stock is checked against, so both can be raised in one call. Nothing
        is written unless every check passes.
        """
        self.catalog.require(book_id)
        with self._book_locks.hold(book_id):
            book = self.catalog.require(book_id)

            new_stock = parse_count(stock)
            if new_stock is None or new_stock < 0:
                raise InvalidStock()

            borrowed = book.active_borrow_count()
            new_total = book.total_copies
            if total_copies is not None:
                new_total = parse_count(total_copies)
                if new_total is None or new_total < 0:
                    raise InvalidTotal()
                if new_total < borrowed:
                    raise TotalBelowBorrowed(
                        f"Total copies cannot be less than currently borrowed count ({borrowed})"
                    )

            ceiling = book.available_ceiling(new_total)
            if new_stock > ceiling:
                raise StockExceedsAvailable(
                    f"Cannot set stock higher than {ceiling} ({borrowed} copies are currently borrowed)"
                )

            old_stock, old_total = book.stock, book.total_copies
            book.total_copies = new_total
            book.stock = new_stock
            logger.info(
                f"Stock updated: id={book.id} stock {old_stock}->{new_stock} "
                f"totalCopies {old_total}->{new_total}"
            )
            return book.to_dict()

    @_logged("delete_book")
    def delete_book(self, book_id: str) -> None:
        self.catalog.require(book_id)
        with self._book_locks.hold(book_id):
            book = self.catalog.require(book_id)
            if book.active_borrow_count() > 0:
                raise HasActiveBorrows()
            self.catalog.remove(book_id)
        self._book_locks.discard(book_id)
        logger.info(f"Book deleted: id={book_id}")

    # ------------------------- Lending ------------------------- #
    @_logged("borrow")
    def borrow(self, user_id: Optional[str], book_id: Optional[str],
               user_name: Optional[str]) -> Dict[str, Any]:
        missing = TextValidator.missing_fields(userId=user_id, bookId=book_id, userName=user_name)
        if missing:
            raise MissingFields(missing)

        self.catalog.require(book_id)
        with self._lock_book_and_user(book_id, user_id):
            book = self.catalog.require(book_id)
            if book.stock <= 0:
                raise OutOfStock()
            if book.find_active_record(user_id) is not None:
                raise AlreadyBorrowed()
            if self.users.active_count(user_id) >= self.max_borrowed_books:
                raise BorrowLimitReached(
                    f"You have reached the maximum borrow limit ({self.max_borrowed_books} books)"
                )

            record = BorrowRecord(user_id=user_id, user_name=user_name)
            book.borrowed_by.append(record)
            book.stock -= 1
            user = self.users.get_or_create(user_id, user_name)
            user.add_book(book.id)
            self.ledger.record_borrow(book, record)

            logger.info(f"Borrowed: user={user_id} book={book.id} stock={book.stock}")
            return {"book": book.to_dict(), "user": user.to_dict()}

    @_logged("return")
    def return_book(self, user_id: Optional[str], book_id: Optional[str]) -> Dict[str, Any]:
        missing = TextValidator.missing_fields(userId=user_id, bookId=book_id)
        if missing:
            raise MissingFields(missing)

        self.catalog.require(book_id)
        with self._lock_book_and_user(book_id, user_id):
            book = self.catalog.require(book_id)
            user = self.users.require(user_id)
            record = book.find_active_record(user_id)
            if record is None:
                raise NotBorrowed()

            record.mark_returned()
            book.stock += 1
            user.remove_book(book.id)
            self.ledger.record_return(book, record)

            logger.info(f"Returned: user={user_id} book={book.id} stock={book.stock}")
            return {"book": book.to_dict(), "user": user.to_dict()}

    # ------------------------- Reports ------------------------- #
    def get_history(self) -> List[Dict[str, Any]]:
        """Borrow/return events, most recent first."""
        return [entry.to_dict() for entry in self.ledger.recent_first()]

    def get_statistics(self) -> Dict[str, Any]:
        total_books = 0
        borrowed_books = 0
        books = self.catalog.all()
        for book in books:
            with self._book_locks.hold(book.id):
                total_books += book.total_copies
                borrowed_books += book.active_borrow_count()
        rate = 0
        if total_books > 0:
            # Halves round up: 1 of 16 copies lent reads 6.3, not 6.2
            exact = Decimal(borrowed_books * 100) / Decimal(total_books)
            rate = float(exact.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
        return {
            "totalBooks": total_books,
            "uniqueTitles": len(books),
            "borrowedBooks": borrowed_books,
            "utilizationRate": rate,
        }

    def inventory_report(self) -> List[Dict[str, Any]]:
        report = []
        for book in self.catalog.all():
            with self._book_locks.hold(book.id):
                report.append({
                    "id": book.id,
                    "title": book.title,
                    "stock": book.stock,
                    "totalCopies": book.total_copies,
                    "borrowed": book.active_borrow_count(),
                    "availability": availability(book.stock),
                })
        return report

    def list_users(self) -> List[Dict[str, Any]]:
        result = []
        for user in self.users.all():
            with self._user_locks.hold(user.id):
                result.append(user.to_dict())
        return result

    @_logged("get_user")
    def get_user(self, user_id: str) -> Dict[str, Any]:
        user = self.users.require(user_id)
        with self._user_locks.hold(user.id):
            return user.to_dict()
