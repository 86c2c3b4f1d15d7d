import threading
from typing import Dict, List, Optional

from errors import UserNotFound


class User:
    """Registry entry: the ids of the books a user currently holds."""

    def __init__(self, id: str, name: Optional[str] = None,
                 borrowed_books: Optional[List[str]] = None) -> None:
        self.id = id
        self.name = name
        self.borrowed_books: List[str] = list(borrowed_books or [])

    def add_book(self, book_id: str) -> None:
        if book_id not in self.borrowed_books:
            self.borrowed_books.append(book_id)

    def remove_book(self, book_id: str) -> None:
        if book_id in self.borrowed_books:
            self.borrowed_books.remove(book_id)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "borrowedBooks": list(self.borrowed_books)}


class UserRegistry:
    """Users known to the library, created lazily on their first borrow."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._users: Dict[str, User] = {}

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def require(self, user_id: str) -> User:
        user = self.get(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def get_or_create(self, user_id: str, name: Optional[str] = None) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                user = User(id=user_id, name=name)
                self._users[user_id] = user
            elif name:
                user.name = name
            return user

    def active_count(self, user_id: str) -> int:
        user = self.get(user_id)
        return len(user.borrowed_books) if user else 0

    def all(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
