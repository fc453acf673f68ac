"""Review aggregation: one review per user per book, rating kept as the mean."""

from __future__ import annotations

from typing import Iterable

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from bookstore.errors import AlreadyReviewed, Conflict
from bookstore.models.book import Book
from bookstore.models.review import Review
from bookstore.models.user import User
from bookstore.schemas.review import ReviewCreate
from bookstore.services.catalog import load_book_for_update

logger = structlog.get_logger()


def average_rating(reviews: Iterable[Review]) -> float:
    ratings = [review.rating for review in reviews]
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


@retry(retry=retry_if_exception_type(StaleDataError), stop=stop_after_attempt(3), reraise=True)
async def _append_review(db: AsyncSession, book_id: int, user_id: int, user: User, data: ReviewCreate) -> Book:
    book = await load_book_for_update(db, book_id)

    if any(review.user_id == user_id for review in book.reviews):
        raise AlreadyReviewed()

    book.reviews.append(Review(user=user, rating=data.rating, comment=data.comment))
    book.rating = average_rating(book.reviews)

    try:
        await db.flush()
        await db.commit()
    except StaleDataError:
        # Another writer bumped the book's version; reload and recompute
        await db.rollback()
        logger.info("review_retry_stale_book", book_id=book_id, user_id=user_id)
        raise
    except IntegrityError as e:
        # Lost the race against another submission by the same user
        await db.rollback()
        raise AlreadyReviewed() from e
    return book


async def add_review(db: AsyncSession, book_id: int, user: User, data: ReviewCreate) -> Book:
    """Append a review and recompute the book's rating in one committed transaction.

    The book row stays locked until commit. Where the lock is not available
    the version counter catches a concurrent write, and the rating is
    recomputed against the fresh review set.
    """
    user_id, username = user.id, user.username
    try:
        book = await _append_review(db, book_id, user_id, user, data)
    except StaleDataError as e:
        raise Conflict("Book was modified concurrently, please retry") from e

    logger.info(
        "review_added",
        book_id=book.id,
        user=username,
        rating=data.rating,
        average=round(book.rating, 2),
        reviews=len(book.reviews),
    )
    return book
