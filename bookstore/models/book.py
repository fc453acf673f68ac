"""Book ORM model with embedded reviews and a derived average rating."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Select,
    func,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookstore.database import Base
from bookstore.models.review import Review
from bookstore.models.user import User, utcnow


class BookCategory(str, enum.Enum):
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    SCIENCE_FICTION = "Science Fiction"
    FANTASY = "Fantasy"
    MYSTERY = "Mystery"
    ROMANCE = "Romance"
    THRILLER = "Thriller"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SCIENCE = "Science"
    TECHNOLOGY = "Technology"
    BUSINESS = "Business"
    SELF_HELP = "Self-Help"
    HEALTH = "Health"
    TRAVEL = "Travel"
    COOKING = "Cooking"
    ART = "Art"
    MUSIC = "Music"
    SPORTS = "Sports"
    CHILDREN = "Children"
    YOUNG_ADULT = "Young Adult"
    EDUCATION = "Education"
    RELIGION = "Religion"
    PHILOSOPHY = "Philosophy"


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("price >= 0", name="book_price_non_negative"),
        CheckConstraint("stock >= 0", name="book_stock_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    isbn: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    cover_image: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    added_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    added_by: Mapped[User] = relationship(lazy="selectin")
    reviews: Mapped[list[Review]] = relationship(
        lazy="selectin",
        order_by=Review.id,
        cascade="all, delete-orphan",
    )

    # Concurrent writers of the same row fail with StaleDataError instead of
    # silently overwriting each other.
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r} active={self.is_active}>"


def active_books() -> Select[tuple[Book]]:
    """Base query for every read path: soft-deleted books are never visible."""
    return select(Book).where(Book.is_active.is_(True))
