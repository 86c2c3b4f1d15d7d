import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

load_dotenv()


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "5000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")
    # Where CLI client commands send their requests
    api_base_url: str = os.getenv("API_BASE_URL", f"http://{api_host}:{api_port}")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "10"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Lending Service")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Lending rules
    max_borrowed_books: int = int(os.getenv("MAX_BORROWED_BOOKS", "2"))
    low_stock_threshold: int = int(os.getenv("LOW_STOCK_THRESHOLD", "2"))
    out_of_stock_threshold: int = 0

    # Start with the demo catalog loaded
    seed_catalog: bool = _env_bool("SEED_CATALOG", "True")


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Route log records through rich; safe to call more than once."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # Per-request client logs drown out the service's own records
    logging.getLogger("httpx").setLevel(logging.WARNING)
