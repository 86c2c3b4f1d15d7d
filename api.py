import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request, Security
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from book import utc_now_iso
from config import configure_logging, settings
from errors import LibraryError
from library import Library

logger = logging.getLogger(__name__)


# --- Models ---
class _CamelModel(BaseModel):
    # The JSON contract is camelCase; snake_case names are accepted too.
    model_config = ConfigDict(populate_by_name=True)


class BookCreateModel(_CamelModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    stock: Any = Field(default=None, description="Initial number of copies")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class StockUpdateModel(_CamelModel):
    stock: Any = None
    total_copies: Any = Field(default=None, alias="totalCopies", description="Omit to keep the current total")


class BorrowRequest(_CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    book_id: Optional[str] = Field(default=None, alias="bookId")
    user_name: Optional[str] = Field(default=None, alias="userName")


class ReturnRequest(_CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    book_id: Optional[str] = Field(default=None, alias="bookId")


class StatisticsModel(BaseModel):
    totalBooks: int
    uniqueTitles: int
    borrowedBooks: int
    utilizationRate: float


# --- Helpers ---
def _ok(data: Any = None, message: str = "OK", status_code: int = 200) -> JSONResponse:
    payload: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    return JSONResponse(status_code=status_code, content=payload)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": code, "message": message},
    )


def get_library(request: Request) -> Library:
    return request.app.state.library


# --- Security ---
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    """Admin routes require the configured API key."""
    if api_key and api_key == settings.api_key:
        return api_key
    raise StarletteHTTPException(status_code=403, detail="Could not validate credentials")


router = APIRouter(prefix="/api")
admin = [Depends(get_api_key)]


# --- Health ---
@router.get("/health")
def health(library: Library = Depends(get_library)):
    return {
        "success": True,
        "message": f"{settings.app_name} is running",
        "timestamp": utc_now_iso(),
        "version": settings.app_version,
        "books": len(library.catalog),
    }


# --- Books ---
@router.get("/books")
def list_books(
    q: Optional[str] = Query(None, description="Filter by title or author"),
    library: Library = Depends(get_library),
):
    return _ok(library.list_books(q), "Books retrieved successfully")


@router.get("/books/{book_id}")
def get_book(book_id: str, library: Library = Depends(get_library)):
    return _ok(library.get_book(book_id), "Book retrieved successfully")


@router.post("/books", dependencies=admin)
def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    book = library.create_book(
        title=payload.title,
        author=payload.author,
        isbn=payload.isbn,
        stock=payload.stock,
        image_url=payload.image_url,
    )
    return _ok(book, "Book created successfully", status_code=201)


@router.put("/books/{book_id}/stock", dependencies=admin)
def update_stock(book_id: str, payload: StockUpdateModel, library: Library = Depends(get_library)):
    book = library.update_stock(book_id, payload.stock, payload.total_copies)
    return _ok(book, "Stock updated successfully")


@router.delete("/books/{book_id}", dependencies=admin)
def delete_book(book_id: str, library: Library = Depends(get_library)):
    library.delete_book(book_id)
    return _ok(message="Book deleted successfully")


# --- Lending ---
@router.post("/borrow")
def borrow_book(payload: BorrowRequest = Body(...), library: Library = Depends(get_library)):
    result = library.borrow(payload.user_id, payload.book_id, payload.user_name)
    return _ok(result, "Book borrowed successfully")


@router.post("/return")
def return_book(payload: ReturnRequest = Body(...), library: Library = Depends(get_library)):
    result = library.return_book(payload.user_id, payload.book_id)
    return _ok(result, "Book returned successfully")


@router.get("/users/{user_id}")
def get_user(user_id: str, library: Library = Depends(get_library)):
    return _ok(library.get_user(user_id), "User retrieved successfully")


# --- Admin ---
@router.get("/admin/history", dependencies=admin)
def get_history(library: Library = Depends(get_library)):
    return _ok(library.get_history(), "Borrow history retrieved successfully")


@router.get("/admin/statistics", dependencies=admin)
def get_statistics(library: Library = Depends(get_library)):
    stats = StatisticsModel(**library.get_statistics())
    return _ok(stats.model_dump(), "Statistics retrieved successfully")


@router.get("/admin/users", dependencies=admin)
def list_users(library: Library = Depends(get_library)):
    return _ok(library.list_users(), "Users retrieved successfully")


@router.get("/admin/inventory", dependencies=admin)
def get_inventory(library: Library = Depends(get_library)):
    return _ok(library.inventory_report(), "Inventory retrieved successfully")


# --- Application ---
def _missing_body_fields(errors: List[Dict[str, Any]]) -> List[str]:
    return [str(err["loc"][-1]) for err in errors if err.get("type") == "missing"]


def create_app(library: Optional[Library] = None) -> FastAPI:
    """Build the HTTP app around one lending engine (a fresh one by default)."""
    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)
    app.state.library = library if library is not None else Library()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")
        return response

    @app.exception_handler(LibraryError)
    async def library_error_handler(request: Request, exc: LibraryError):
        return _error(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        missing = _missing_body_fields(exc.errors())
        if missing:
            return _error(400, "MISSING_FIELDS", f"Missing required fields: {', '.join(missing)}")
        return _error(400, "VALIDATION_ERROR", "Malformed request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return _error(exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(500, "INTERNAL_ERROR", "Something went wrong!")

    app.include_router(router)
    return app


def serve_app() -> FastAPI:
    """Entry point for `uvicorn --factory`: logging set up, demo catalog per settings."""
    configure_logging()
    return create_app()
