from __future__ import annotations

from datetime import datetime, timezone

from config import settings

STATUS_BORROWED = "borrowed"
STATUS_RETURNED = "returned"

AVAILABILITY_OUT = "out_of_stock"
AVAILABILITY_LOW = "low_stock"
AVAILABILITY_IN = "in_stock"


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing 'Z'."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def availability(stock: int) -> str:
    if stock <= settings.out_of_stock_threshold:
        return AVAILABILITY_OUT
    if stock <= settings.low_stock_threshold:
        return AVAILABILITY_LOW
    return AVAILABILITY_IN


class BorrowRecord:
    """One lending of a book to a user; kept forever as the book's audit trail."""

    def __init__(self, user_id: str, user_name: str, borrowed_date: str | None = None,
                 status: str = STATUS_BORROWED, return_date: str | None = None) -> None:
        self.user_id = user_id
        self.user_name = user_name
        self.borrowed_date = borrowed_date or utc_now_iso()
        self.status = status
        self.return_date = return_date

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_BORROWED

    def mark_returned(self, when: str | None = None) -> None:
        self.status = STATUS_RETURNED
        self.return_date = when or utc_now_iso()

    def to_dict(self) -> dict:
        data = {
            "userId": self.user_id,
            "userName": self.user_name,
            "borrowedDate": self.borrowed_date,
            "status": self.status,
        }
        if self.return_date is not None:
            data["returnDate"] = self.return_date
        return data


class Book:
    """A title in the catalog together with its copy counts and borrow records."""

    def __init__(self, id: str, title: str, author: str, isbn: str, stock: int,
                 total_copies: int | None = None, image_url: str | None = None,
                 borrowed_by: list[BorrowRecord] | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.isbn = isbn.strip()
        self.stock = stock
        self.total_copies = stock if total_copies is None else total_copies
        self.image_url = image_url
        self.borrowed_by: list[BorrowRecord] = borrowed_by or []

    def active_borrow_count(self) -> int:
        return sum(1 for record in self.borrowed_by if record.is_active)

    def available_ceiling(self, total_copies: int | None = None) -> int:
        """Largest stock value the book may hold given its active borrows."""
        total = self.total_copies if total_copies is None else total_copies
        return total - self.active_borrow_count()

    def find_active_record(self, user_id: str) -> BorrowRecord | None:
        # Earliest-inserted match; a user never holds two active records for one book.
        for record in self.borrowed_by:
            if record.user_id == user_id and record.is_active:
                return record
        return None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "stock": self.stock,
            "totalCopies": self.total_copies,
            "borrowedBy": [record.to_dict() for record in self.borrowed_by],
            "borrowedCount": self.active_borrow_count(),
            "availability": availability(self.stock),
        }
        if self.image_url:
            data["imageUrl"] = self.image_url
        return data
