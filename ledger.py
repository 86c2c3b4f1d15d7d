from __future__ import annotations

import threading
from typing import List, Optional

from book import STATUS_BORROWED, STATUS_RETURNED, Book, BorrowRecord

ACTION_BORROWED = "borrowed"
ACTION_RETURNED = "returned"


class HistoryEntry:
    """One line of the library-wide lending feed."""

    def __init__(self, user_id: str, user_name: str, book_id: str, book_title: str,
                 borrowed_date: str, action: str, status: str,
                 return_date: Optional[str] = None) -> None:
        self.user_id = user_id
        self.user_name = user_name
        self.book_id = book_id
        self.book_title = book_title
        self.borrowed_date = borrowed_date
        self.return_date = return_date
        self.action = action
        self.status = status

    @classmethod
    def for_borrow(cls, book: Book, record: BorrowRecord) -> "HistoryEntry":
        return cls(
            user_id=record.user_id,
            user_name=record.user_name,
            book_id=book.id,
            book_title=book.title,
            borrowed_date=record.borrowed_date,
            action=ACTION_BORROWED,
            status=STATUS_BORROWED,
        )

    @classmethod
    def for_return(cls, book: Book, record: BorrowRecord) -> "HistoryEntry":
        return cls(
            user_id=record.user_id,
            user_name=record.user_name,
            book_id=book.id,
            book_title=book.title,
            borrowed_date=record.borrowed_date,
            return_date=record.return_date,
            action=ACTION_RETURNED,
            status=STATUS_RETURNED,
        )

    def to_dict(self) -> dict:
        data = {
            "userId": self.user_id,
            "userName": self.user_name,
            "bookId": self.book_id,
            "bookTitle": self.book_title,
            "borrowedDate": self.borrowed_date,
            "action": self.action,
            "status": self.status,
        }
        if self.return_date is not None:
            data["returnDate"] = self.return_date
        return data


class BorrowLedger:
    """Append-only log of borrow and return events.

    Entries are appended by the lending engine as each operation commits;
    the feed is never rebuilt from the books.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = []

    def append(self, entry: HistoryEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def record_borrow(self, book: Book, record: BorrowRecord) -> HistoryEntry:
        entry = HistoryEntry.for_borrow(book, record)
        self.append(entry)
        return entry

    def record_return(self, book: Book, record: BorrowRecord) -> HistoryEntry:
        entry = HistoryEntry.for_return(book, record)
        self.append(entry)
        return entry

    def recent_first(self) -> List[HistoryEntry]:
        with self._lock:
            return list(reversed(self._entries))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
