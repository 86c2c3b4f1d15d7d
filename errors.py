"""Errors raised by the lending engine.

Every error carries a stable ``code`` so callers can tell failures apart
without parsing messages, and a ``status_code`` the HTTP layer returns as-is.
Validation errors also subclass ``ValueError`` and not-found errors subclass
``LookupError`` so plain ``except`` clauses keep working.
"""


class LibraryError(Exception):
    code = "LIBRARY_ERROR"
    status_code = 500
    default_message = "Library operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Validation ---
class ValidationError(LibraryError, ValueError):
    code = "VALIDATION_ERROR"
    status_code = 400


class MissingFields(ValidationError):
    code = "MISSING_FIELDS"
    default_message = "Missing required fields"

    def __init__(self, fields: list[str] | None = None) -> None:
        self.fields = list(fields or [])
        if self.fields:
            super().__init__(f"Missing required fields: {', '.join(self.fields)}")
        else:
            super().__init__()


class InvalidStock(ValidationError):
    code = "INVALID_STOCK"
    default_message = "Invalid stock value"


class InvalidTotal(ValidationError):
    code = "INVALID_TOTAL"
    default_message = "Total copies cannot be negative"


# --- Not found ---
class NotFoundError(LibraryError, LookupError):
    code = "NOT_FOUND"
    status_code = 404


class BookNotFound(NotFoundError):
    code = "NOT_FOUND"
    default_message = "Book not found"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"
    default_message = "User not found"


# --- Conflicts ---
class ConflictError(LibraryError):
    code = "CONFLICT"
    status_code = 409


class DuplicateIsbn(ConflictError):
    code = "DUPLICATE_ISBN"
    default_message = "Book with this ISBN already exists"


class HasActiveBorrows(ConflictError):
    code = "HAS_ACTIVE_BORROWS"
    default_message = "Cannot delete book with active borrows"


class OutOfStock(ConflictError):
    code = "OUT_OF_STOCK"
    default_message = "Book is not available for borrowing"


class AlreadyBorrowed(ConflictError):
    code = "ALREADY_BORROWED"
    default_message = "You have already borrowed this book"


class BorrowLimitReached(ConflictError):
    code = "BORROW_LIMIT_REACHED"
    default_message = "You have reached the maximum borrow limit"


class NotBorrowed(ConflictError):
    code = "NOT_BORROWED"
    default_message = "You have not borrowed this book"


class TotalBelowBorrowed(ConflictError):
    code = "TOTAL_BELOW_BORROWED"
    default_message = "Total copies cannot be less than currently borrowed count"


class StockExceedsAvailable(ConflictError):
    code = "STOCK_EXCEEDS_AVAILABLE"
    default_message = "Stock cannot exceed available copies"
