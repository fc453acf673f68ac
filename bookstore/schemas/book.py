"""Book and review schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from bookstore.models.book import BookCategory

# Fields a patch may not clear once the book exists
REQUIRED_BOOK_FIELDS = frozenset({"title", "author", "price", "category"})

# Column limits: Numeric(10, 2) for price, 32-bit Integer for stock
MAX_PRICE = 99_999_999.99
MAX_STOCK = 2_147_483_647


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BookCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: float = Field(..., ge=0, le=MAX_PRICE, allow_inf_nan=False)
    category: BookCategory
    isbn: Optional[str] = Field(None, max_length=20)
    stock: int = Field(0, ge=0, le=MAX_STOCK)

    normalize_optional = field_validator("description", "isbn", mode="before")(_blank_to_none)


class BookUpdate(BaseModel):
    """Partial update. Only keys the client actually sent are applied
    (``model_dump(exclude_unset=True)``); an empty ``description`` or
    ``isbn`` clears the stored value."""

    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[float] = Field(None, ge=0, le=MAX_PRICE, allow_inf_nan=False)
    category: Optional[BookCategory] = None
    isbn: Optional[str] = Field(None, max_length=20)
    stock: Optional[int] = Field(None, ge=0, le=MAX_STOCK)

    normalize_optional = field_validator("description", "isbn", mode="before")(_blank_to_none)

    @model_validator(mode="after")
    def _required_fields_not_cleared(self) -> "BookUpdate":
        for name in sorted(REQUIRED_BOOK_FIELDS & self.model_fields_set):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be empty")
        if "stock" in self.model_fields_set and self.stock is None:
            raise ValueError("stock must be a non-negative integer")
        return self


class _CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class UserSummary(_CamelModel):
    """The only user fields ever exposed next to a book."""

    id: int
    username: str


class ReviewResponse(_CamelModel):
    id: int
    user: UserSummary
    rating: int
    comment: Optional[str]
    created_at: datetime


class BookResponse(_CamelModel):
    id: int
    title: str
    author: str
    description: Optional[str]
    price: float
    category: str
    isbn: Optional[str]
    stock: int
    cover_image: Optional[str]
    rating: float
    reviews: list[ReviewResponse]
    added_by: UserSummary
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BookListResponse(_CamelModel):
    books: list[BookResponse]
    total_pages: int
    current_page: int
    total: int
    categories: list[str]


class BookDetailResponse(BaseModel):
    book: BookResponse


class BookMessageResponse(BaseModel):
    message: str
    book: BookResponse


class MessageResponse(BaseModel):
    message: str
