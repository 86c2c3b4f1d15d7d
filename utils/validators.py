import re
from typing import Any, Optional


class ISBNValidator:
    """ISBN helpers used for catalog uniqueness."""

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> str:
        # Drop hyphens, spaces and punctuation so formatting never defeats uniqueness.
        if raw is None:
            return ""
        return re.sub(r"[^0-9A-Za-z]", "", raw).upper()


class TextValidator:
    """Presence checks for request fields."""

    @staticmethod
    def is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        return False

    @staticmethod
    def missing_fields(**values: Any) -> list[str]:
        """Names of the given fields that are absent or blank, in argument order."""
        return [name for name, value in values.items() if TextValidator.is_blank(value)]

    @staticmethod
    def missing_text_fields(**values: Any) -> list[str]:
        """Like missing_fields, but anything that is not a string counts as missing too."""
        return [
            name for name, value in values.items()
            if not isinstance(value, str) or TextValidator.is_blank(value)
        ]


def parse_count(value: Any) -> Optional[int]:
    """Coerce a copy count to int; None when it is not a whole number.

    Accepts ints and numeric strings the way JSON clients tend to send them.
    Booleans are rejected even though ``bool`` subclasses ``int``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text)
    return None
