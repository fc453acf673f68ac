"""Book catalog routes: public browsing, authenticated writes and reviews."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from bookstore.auth.dependencies import get_current_user
from bookstore.config import get_settings
from bookstore.database import get_db
from bookstore.errors import ValidationError
from bookstore.metrics import CATALOG_OPERATIONS
from bookstore.models.book import BookCategory
from bookstore.models.user import User
from bookstore.schemas.book import (
    BookCreate,
    BookDetailResponse,
    BookListResponse,
    BookMessageResponse,
    BookResponse,
    BookUpdate,
    MessageResponse,
)
from bookstore.schemas.review import ReviewCreate
from bookstore.services import catalog, query, reviews
from bookstore.services.media import CoverImageManager, get_cover_manager

settings = get_settings()
router = APIRouter(prefix="/books", tags=["Books"])

COVER_FIELD = "coverImage"


async def read_book_payload(request: Request) -> tuple[dict[str, Any], Optional[UploadFile]]:
    """Book fields plus optional cover from a JSON body or a multipart form.

    Only keys the client actually sent end up in the dict, which is what the
    partial-update semantics rely on.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Malformed JSON body")
        if not isinstance(body, dict):
            raise ValidationError("Expected a JSON object")
        return body, None

    form = await request.form()
    fields: dict[str, Any] = {}
    cover: Optional[UploadFile] = None
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            # Browsers submit an empty file part when nothing was picked
            if key == COVER_FIELD and value.filename:
                cover = value
        else:
            fields[key] = value
    return fields, cover


@router.get("", response_model=BookListResponse)
async def list_books(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    search: str = "",
    category: str = "",
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """Paginated listing of active books with search, category filter and sorting."""
    result = await query.list_books(
        db,
        page=page,
        page_size=limit,
        search=search,
        category=category,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return BookListResponse(
        books=[BookResponse.model_validate(b) for b in result.items],
        total_pages=result.total_pages,
        current_page=result.page,
        total=result.total,
        categories=result.categories,
    )


@router.get("/categories", response_model=list[str])
async def list_categories():
    """Every category a book may be filed under."""
    return [c.value for c in BookCategory]


@router.get("/{book_id}", response_model=BookDetailResponse)
async def get_book(book_id: int, db: AsyncSession = Depends(get_db)):
    book = await catalog.get_book(db, book_id)
    return BookDetailResponse(book=BookResponse.model_validate(book))


@router.post("", response_model=BookMessageResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    media: CoverImageManager = Depends(get_cover_manager),
):
    """Add a book owned by the caller. Accepts JSON or multipart with ``coverImage``."""
    fields, cover = await read_book_payload(request)
    draft = BookCreate.model_validate(fields)
    book = await catalog.create_book(db, draft, current_user, cover=cover, media=media)
    CATALOG_OPERATIONS.labels(operation="create").inc()
    return BookMessageResponse(message="Book added successfully", book=BookResponse.model_validate(book))


@router.put("/{book_id}", response_model=BookMessageResponse)
async def update_book(
    book_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    media: CoverImageManager = Depends(get_cover_manager),
):
    """Update a book (owner or admin). Absent fields keep their value."""
    fields, cover = await read_book_payload(request)
    patch = BookUpdate.model_validate(fields)
    book = await catalog.update_book(db, book_id, patch, current_user, cover=cover, media=media)
    CATALOG_OPERATIONS.labels(operation="update").inc()
    return BookMessageResponse(message="Book updated successfully", book=BookResponse.model_validate(book))


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Soft-delete a book (owner or admin)."""
    await catalog.soft_delete_book(db, book_id, current_user)
    CATALOG_OPERATIONS.labels(operation="delete").inc()
    return MessageResponse(message="Book deleted successfully")


@router.post("/{book_id}/reviews", response_model=BookMessageResponse)
async def add_review(
    book_id: int,
    data: ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    book = await reviews.add_review(db, book_id, current_user, data)
    CATALOG_OPERATIONS.labels(operation="review").inc()
    return BookMessageResponse(message="Review added successfully", book=BookResponse.model_validate(book))
