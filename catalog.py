import itertools
import logging
import threading
from typing import Dict, List, Optional

from book import Book
from errors import BookNotFound, DuplicateIsbn
from utils.validators import ISBNValidator

logger = logging.getLogger(__name__)

# Demo catalog loaded when SEED_CATALOG is on. Ids "1".."5" are taken here,
# so books created later start at "6".
SEED_BOOKS = [
    {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "isbn": "9780743273565",
        "stock": 3,
        "totalCopies": 5,
        "imageUrl": "https://images-na.ssl-images-amazon.com/images/I/71FTb9X6wsL.jpg",
    },
    {
        "title": "To Kill a Mockingbird",
        "author": "Harper Lee",
        "isbn": "9780061120084",
        "stock": 0,
        "totalCopies": 4,
        "imageUrl": "https://m.media-amazon.com/images/I/81aY1lxk+9L._AC_UF1000,1000_QL80_.jpg",
    },
    {
        "title": "1984",
        "author": "George Orwell",
        "isbn": "9780451524935",
        "stock": 2,
        "totalCopies": 6,
        "imageUrl": "https://m.media-amazon.com/images/I/71kxa1-0mfL._AC_UF1000,1000_QL80_.jpg",
    },
    {
        "title": "Pride and Prejudice",
        "author": "Jane Austen",
        "isbn": "9780141439518",
        "stock": 5,
        "totalCopies": 5,
        "imageUrl": "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books/1320399351i/1885.jpg",
    },
    {
        "title": "The Catcher in the Rye",
        "author": "J.D. Salinger",
        "isbn": "9780316769488",
        "stock": 1,
        "totalCopies": 3,
        "imageUrl": "https://m.media-amazon.com/images/I/8125BDk3l9L._AC_UF1000,1000_QL80_.jpg",
    },
]


class CatalogStore:
    """Owns the book records, keyed by id and indexed by normalized ISBN.

    The store's own lock only covers its structure (the id map, the ISBN
    index and the id counter). Field-level changes to a book are serialized
    by the lending engine's per-book locks.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._books: Dict[str, Book] = {}
        self._by_isbn: Dict[str, str] = {}
        self._ids = itertools.count(1)

    # ------------------------- Lookups ------------------------- #
    def get(self, book_id: str) -> Optional[Book]:
        with self._lock:
            return self._books.get(book_id)

    def require(self, book_id: str) -> Book:
        book = self.get(book_id)
        if book is None:
            raise BookNotFound()
        return book

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        key = ISBNValidator.normalize_isbn(isbn)
        with self._lock:
            book_id = self._by_isbn.get(key)
            return self._books.get(book_id) if book_id is not None else None

    def all(self) -> List[Book]:
        """Books in insertion order."""
        with self._lock:
            return list(self._books.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._books)

    # ------------------------- Mutations ------------------------- #
    def create(self, title: str, author: str, isbn: str, stock: int,
               total_copies: Optional[int] = None, image_url: Optional[str] = None) -> Book:
        """Assign the next id and insert; the duplicate check and insert are one step."""
        key = ISBNValidator.normalize_isbn(isbn)
        with self._lock:
            if self.find_by_isbn(isbn) is not None:
                raise DuplicateIsbn()
            book = Book(
                id=str(next(self._ids)),
                title=title,
                author=author,
                isbn=isbn,
                stock=stock,
                total_copies=total_copies,
                image_url=image_url,
            )
            self._books[book.id] = book
            self._by_isbn[key] = book.id
        logger.debug(f"Catalog insert: id={book.id} isbn={book.isbn}")
        return book

    def remove(self, book_id: str) -> Book:
        with self._lock:
            book = self._books.pop(book_id, None)
            if book is None:
                raise BookNotFound()
            self._by_isbn.pop(ISBNValidator.normalize_isbn(book.isbn), None)
        logger.debug(f"Catalog remove: id={book_id}")
        return book

    def seed(self, records: Optional[List[dict]] = None) -> None:
        for data in SEED_BOOKS if records is None else records:
            self.create(
                title=data["title"],
                author=data["author"],
                isbn=data["isbn"],
                stock=data["stock"],
                total_copies=data.get("totalCopies"),
                image_url=data.get("imageUrl"),
            )
