"""
Promotion purchase service.

Validates the caller against row level security, computes the promotion
window and the new listing expiry, then applies the listing update and the
credit debit in one database transaction. The debit is conditional on the
balance still covering the cost, so concurrent purchases cannot overdraw a
profile. The ledger entry is appended in a savepoint and only logged on
failure.
"""

from datetime import UTC, datetime

import psycopg

from app.auth.verify import require_user_id
from app.config import settings
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.listing_request import PromoteListingRequest
from app.models.domain.listing_domain import CreditTransaction, PromotionResult
from app.repositories.stores import PrivilegedStore, ScopedStore
from app.services.credit_service import append_ledger_entry
from app.services.errors import (
    ForbiddenError,
    InsufficientCreditsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.services.promotion_window import (
    calculate_promotion_window,
    describe_package,
    merge_expiry,
)

logger = get_logger(__name__)

PREMIUM_UPGRADE_TRANSACTION = "premium_upgrade"


async def promote_listing(
    request: PromoteListingRequest,
    claims: dict | None,
    *,
    scoped_store: ScopedStore | None = None,
    privileged_store: PrivilegedStore | None = None,
    now: datetime | None = None,
) -> PromotionResult:
    """
    Purchase a day or night promotion for one of the caller's listings.

    Args:
        request: validated purchase request
        claims: caller JWT claims (None when unauthenticated)
        scoped_store: caller-scoped reads (defaults to ScopedStore(claims))
        privileged_store: service-role writes (defaults to PrivilegedStore())
        now: current instant (defaults to datetime.now(UTC))

    Returns:
        PromotionResult with the applied window and new expiry

    Raises:
        UnauthorizedError, NotFoundError, ForbiddenError, ValidationError
        (paused listing), InsufficientCreditsError, PersistenceError
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
            "Listing not found or you do not have permission to promote it.", user_id=user_id
        )

    if listing.user_id != user_id:
        logger.warning(
            "Promotion attempted on foreign listing",
            user_id=user_id,
            listing_id=listing.id,
            owner_id=listing.user_id,
        )
        raise ForbiddenError("You do not have permission to promote this listing.", user_id=user_id)

    if listing.is_paused:
        raise ValidationError(
            "Cannot promote a paused listing. Resume it first.", user_id=user_id
        )

    try:
        profile = await scoped_store.get_profile(user_id)
    except DatabaseError as e:
        logger.warning("Profile lookup failed", user_id=user_id, error=str(e))
        profile = None

    if profile is None:
        raise NotFoundError("User profile not found.", user_id=user_id)

    if profile.credits < request.cost:
        raise InsufficientCreditsError(request.cost, user_id=user_id)

    window = calculate_promotion_window(
        request.promotion_type,
        request.duration_hours,
        request.time_slot,
        request.timezone_offset_minutes,
        now,
        night_start_hour=settings.NIGHT_PROMOTION_START_HOUR_UTC,
    )
    new_expires_at = merge_expiry(
        listing.expires_at, window.end, grace_days=settings.PROMOTION_EXPIRY_GRACE_DAYS
    )

    listing_update = {
        "is_premium": True,
        "promotion_mode": request.promotion_type.value,
        "promotion_start_at": window.start,
        "promotion_end_at": window.end,
        "last_bumped_at": now,
        "expires_at": new_expires_at,
    }
    ledger_entry = CreditTransaction(
        user_id=user_id,
        amount=-request.cost,
        type=PREMIUM_UPGRADE_TRANSACTION,
        package_name=describe_package(
            request.promotion_type, request.duration_hours, request.time_slot
        ),
    )

    try:
        async with privileged_store.transaction() as session:
            try:
                await session.update_listing(listing.id, listing_update)
            except DatabaseError as e:
                raise PersistenceError(
                    f"Failed to update listing to premium: {e}", user_id=user_id
                ) from e

            try:
                remaining_credits = await session.debit_credits(user_id, request.cost)
            except DatabaseError as e:
                logger.error(
                    "Failed to deduct credits after promoting listing",
                    user_id=user_id,
                    listing_id=listing.id,
                    error=str(e),
                )
                raise PersistenceError(
                    "Failed to deduct credits. Please contact support.", user_id=user_id
                ) from e

            if remaining_credits is None:
                # Balance dropped below cost since the check above
                logger.warning(
                    "Balance no longer covers promotion, rolling back",
                    user_id=user_id,
                    listing_id=listing.id,
                    cost=request.cost,
                )
                raise InsufficientCreditsError(request.cost, user_id=user_id)

            ledger_recorded = await append_ledger_entry(session, ledger_entry)

    except psycopg.Error as e:
        logger.error(
            "Promotion transaction failed", user_id=user_id, listing_id=listing.id, error=str(e)
        )
        raise PersistenceError(f"Failed to update listing to premium: {e}", user_id=user_id) from e

    logger.info(
        "Listing promoted",
        user_id=user_id,
        listing_id=listing.id,
        promotion_mode=request.promotion_type.value,
        promotion_start_at=window.start.isoformat(),
        promotion_end_at=window.end.isoformat(),
        expires_at=new_expires_at.isoformat(),
        cost=request.cost,
        remaining_credits=remaining_credits,
        ledger_recorded=ledger_recorded,
    )

    return PromotionResult(
        listing_id=listing.id,
        window=window,
        expires_at=new_expires_at,
        remaining_credits=remaining_credits,
        ledger_recorded=ledger_recorded,
    )
