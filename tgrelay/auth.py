"""Single-identity authorization check."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def is_authorized(user_id: int, authorized_id: int | None) -> bool:
    """True iff ``user_id`` is the configured identity. Fail-closed on bad config."""
    if not isinstance(authorized_id, int) or isinstance(authorized_id, bool):
        logger.error("Authorization check failed: authorized user id is invalid (%r)", authorized_id)
        return False
    return user_id == authorized_id
