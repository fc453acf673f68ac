"""
Catalog store: create, fetch, update and soft-delete books.

Reads go through ``active_books()`` so soft-deleted rows never leak.
Mutations lock the book row (``SELECT ... FOR UPDATE``) and the mapper's
version counter rejects writes based on a stale copy.
"""

from __future__ import annotations

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from bookstore.auth.permissions import require_owner_or_admin
from bookstore.errors import DuplicateIsbn, NotFound
from bookstore.models.book import Book, active_books
from bookstore.models.user import User
from bookstore.schemas.book import BookCreate, BookUpdate
from bookstore.services.media import CoverImageManager

logger = structlog.get_logger()


async def get_book(db: AsyncSession, book_id: int) -> Book:
    result = await db.execute(active_books().where(Book.id == book_id))
    book = result.scalar_one_or_none()
    if book is None:
        raise NotFound()
    return book


async def load_book_for_update(db: AsyncSession, book_id: int) -> Book:
    """Fetch an active book with its row locked for the rest of the transaction."""
    result = await db.execute(
        active_books()
        .where(Book.id == book_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    book = result.scalar_one_or_none()
    if book is None:
        raise NotFound()
    return book


async def _ensure_isbn_available(db: AsyncSession, isbn: str, exclude_id: Optional[int] = None) -> None:
    # Inactive books keep their ISBN, so this deliberately skips active_books()
    query = select(Book.id).where(Book.isbn == isbn)
    if exclude_id is not None:
        query = query.where(Book.id != exclude_id)
    if (await db.execute(query.limit(1))).first() is not None:
        raise DuplicateIsbn()


async def create_book(
    db: AsyncSession,
    draft: BookCreate,
    owner: User,
    cover: Optional[UploadFile] = None,
    media: Optional[CoverImageManager] = None,
) -> Book:
    if draft.isbn:
        await _ensure_isbn_available(db, draft.isbn)

    cover_path = await media.attach(cover) if cover is not None and media is not None else None

    book = Book(
        **draft.model_dump(),
        cover_image=cover_path,
        rating=0.0,
        reviews=[],
        added_by=owner,
        is_active=True,
    )
    db.add(book)
    try:
        await db.flush()
        await db.commit()
    except Exception as e:
        if cover_path and media is not None:
            await media.detach(cover_path)
        if isinstance(e, IntegrityError) and draft.isbn:
            raise DuplicateIsbn() from e
        raise

    logger.info("book_created", book_id=book.id, title=book.title, user=owner.username)
    return book


async def update_book(
    db: AsyncSession,
    book_id: int,
    patch: BookUpdate,
    requester: User,
    cover: Optional[UploadFile] = None,
    media: Optional[CoverImageManager] = None,
) -> Book:
    book = await load_book_for_update(db, book_id)
    require_owner_or_admin(book.added_by_id, requester, action="update")

    changes = patch.model_dump(exclude_unset=True)
    new_isbn = changes.get("isbn")
    if new_isbn and new_isbn != book.isbn:
        await _ensure_isbn_available(db, new_isbn, exclude_id=book.id)

    old_cover = book.cover_image
    new_cover = await media.attach(cover) if cover is not None and media is not None else None

    try:
        for field, value in changes.items():
            setattr(book, field, value)
        if new_cover:
            book.cover_image = new_cover
        await db.flush()
        # The old file goes only once the new path is committed
        await db.commit()
    except Exception as e:
        if new_cover and media is not None:
            await media.detach(new_cover)
        if isinstance(e, IntegrityError) and new_isbn:
            raise DuplicateIsbn() from e
        raise

    if new_cover and old_cover and media is not None:
        await media.detach(old_cover)

    logger.info(
        "book_updated",
        book_id=book.id,
        fields=sorted(changes),
        cover_replaced=bool(new_cover),
        user=requester.username,
    )
    return book


async def soft_delete_book(db: AsyncSession, book_id: int, requester: User) -> None:
    book = await load_book_for_update(db, book_id)
    require_owner_or_admin(book.added_by_id, requester, action="delete")

    book.is_active = False
    await db.flush()
    await db.commit()
    logger.info("book_deleted", book_id=book.id, title=book.title, user=requester.username)
