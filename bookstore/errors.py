"""Catalog error taxonomy.

Every failure the service reports to a client is one of these. The FastAPI
exception handlers in ``bookstore.main`` turn them into ``{"detail": ...}``
responses with the status code carried by the exception.
"""

from __future__ import annotations

from typing import Optional


class CatalogError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(CatalogError):
    status_code = 400
    default_message = "Validation failed"


class Unauthorized(CatalogError):
    status_code = 401
    default_message = "Token is not valid"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(CatalogError):
    status_code = 403
    default_message = "Not authorized to modify this book"


class NotFound(CatalogError):
    status_code = 404
    default_message = "Book not found"


class DuplicateIsbn(CatalogError):
    # Reported as a plain bad request, like other input problems
    status_code = 400
    default_message = "Book with this ISBN already exists"


class AlreadyReviewed(CatalogError):
    status_code = 400
    default_message = "You have already reviewed this book"


class AccountDeactivated(CatalogError):
    status_code = 403
    default_message = "Account is deactivated"


class Conflict(CatalogError):
    status_code = 409
    default_message = "Resource already exists"


class InternalError(CatalogError):
    status_code = 500
