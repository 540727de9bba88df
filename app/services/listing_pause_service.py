"""
Pause and resume listings.

Pausing freezes the time left until expiry (and until the end of an
active promotion) into interval columns and clears the absolute
timestamps; resuming rebuilds them from "now". While ``is_paused`` is true
the promotion window lives in ``remaining_promotion_duration`` and the
start/end columns are null.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import psycopg

from app.auth.verify import require_user_id
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.listing_request import PauseResumeListingRequest
from app.models.domain.listing_domain import Listing
from app.repositories.stores import PrivilegedStore, ScopedStore
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError

logger = get_logger(__name__)


def build_pause_update(listing: Listing, now: datetime) -> dict[str, Any]:
    """Column updates that pause ``listing`` at ``now``."""
    update: dict[str, Any] = {
        "is_paused": True,
        "paused_at": now,
        "remaining_expires_at_duration": (
            listing.expires_at - now if listing.expires_at is not None else None
        ),
        "expires_at": None,
    }

    if listing.promotion_start_at and listing.promotion_end_at:
        remaining_promotion = listing.promotion_end_at - now
        update.update({"promotion_start_at": None, "promotion_end_at": None})
        if remaining_promotion > timedelta(0):
            update["remaining_promotion_duration"] = remaining_promotion
        else:
            # Promotion already over: drop it rather than freezing a negative window
            update.update(
                {
                    "remaining_promotion_duration": None,
                    "promotion_mode": None,
                    "is_premium": False,
                }
            )

    return update


def build_resume_update(listing: Listing, now: datetime) -> dict[str, Any]:
    """Column updates that resume ``listing`` at ``now``."""
    remaining = listing.remaining_expires_at_duration or timedelta(0)
    update: dict[str, Any] = {
        "is_paused": False,
        "paused_at": None,
        "expires_at": now + remaining,
        "remaining_expires_at_duration": None,
    }

    remaining_promotion = listing.remaining_promotion_duration
    if remaining_promotion is not None and remaining_promotion > timedelta(0):
        update.update(
            {
                "promotion_start_at": now,
                "promotion_end_at": now + remaining_promotion,
                "remaining_promotion_duration": None,
            }
        )
    elif remaining_promotion is not None:
        update.update(
            {"remaining_promotion_duration": None, "promotion_mode": None, "is_premium": False}
        )

    return update


async def pause_or_resume_listing(
    request: PauseResumeListingRequest,
    claims: dict | None,
    *,
    scoped_store: ScopedStore | None = None,
    privileged_store: PrivilegedStore | None = None,
    now: datetime | None = None,
) -> str:
    """
    Pause or resume one of the caller's listings.

    Returns:
        User-facing confirmation message (already paused / not paused
        requests succeed without touching the row)
    """
    user_id = require_user_id(claims)
    scoped_store = scoped_store or ScopedStore(claims)
    privileged_store = privileged_store or PrivilegedStore()
    now = now or datetime.now(UTC)

    try:
        listing = await scoped_store.get_listing(request.listing_id)
    except DatabaseError as e:
        logger.warning("Listing lookup failed", listing_id=request.listing_id, error=str(e))
        listing = None

    if listing is None:
        raise NotFoundError(
            "Listing not found or you do not have permission to manage it.", user_id=user_id
        )

    if listing.user_id != user_id:
        raise ForbiddenError("Forbidden: You do not own this listing", user_id=user_id)

    if request.action == "pause":
        if listing.is_paused:
            return "Listing is already paused."
        update = build_pause_update(listing, now)
    else:
        if not listing.is_paused:
            return "Listing is not paused."
        update = build_resume_update(listing, now)

    try:
        async with privileged_store.transaction() as session:
            await session.update_listing(listing.id, update)
    except (DatabaseError, psycopg.Error) as e:
        logger.error(
            "Listing pause/resume failed",
            user_id=user_id,
            listing_id=listing.id,
            action=request.action,
            error=str(e),
        )
        raise PersistenceError(f"Failed to {request.action} listing: {e}", user_id=user_id) from e

    logger.info("Listing pause state changed", user_id=user_id, listing_id=listing.id, action=request.action)
    return f"Listing {request.action}d successfully."
