"""Ownership-or-admin guard shared by every mutating catalog operation."""

from __future__ import annotations

import structlog

from bookstore.errors import Forbidden
from bookstore.models.user import User

logger = structlog.get_logger()


def require_owner_or_admin(owner_id: int, requester: User, action: str = "modify") -> None:
    if requester.id == owner_id or requester.is_admin:
        return
    logger.warning("ownership_check_failed", owner_id=owner_id, requester_id=requester.id, action=action)
    raise Forbidden(f"Not authorized to {action} this book")
