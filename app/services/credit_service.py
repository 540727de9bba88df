"""
Credit balance and ledger operations.

Ledger appends are best effort: they run in a savepoint inside the
caller's transaction, so a failed insert is logged and rolled back on its
own without undoing the balance change it describes.

Service layer returns plain values or domain models - API layer handles
HTTP concerns.
"""

import psycopg

from app.auth.verify import require_user_id
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.credit_request import ManageCreditsRequest
from app.models.domain.listing_domain import CreditTransaction
from app.repositories.stores import PrivilegedSession, PrivilegedStore, ScopedStore
from app.services.errors import (
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = get_logger(__name__)

DEFAULT_ADJUSTMENT_DESCRIPTION = "Admin Adjustment"


async def append_ledger_entry(session: PrivilegedSession, transaction: CreditTransaction) -> bool:
    """
    Record a credit transaction without risking the surrounding transaction.

    Returns:
        True if the entry was written, False if the insert failed (logged)
    """
    try:
        async with session.savepoint():
            await session.insert_credit_transaction(transaction)
        return True
    except DatabaseError as e:
        logger.error(
            "Failed to log credit transaction",
            user_id=transaction.user_id,
            amount=transaction.amount,
            type=transaction.type,
            error=str(e),
        )
        return False


async def adjust_credits(
    request: ManageCreditsRequest,
    claims: dict | None,
    *,
    scoped_store: ScopedStore | None = None,
    privileged_store: PrivilegedStore | None = None,
) -> int:
    """
    Add or subtract credits on a user's profile (admin only).

    Args:
        request: target user, signed amount, ledger type and description
        claims: caller JWT claims (None when unauthenticated)

    Returns:
        The target profile's new balance

    Raises:
        UnauthorizedError: no caller identity
        ForbiddenError: caller is not an admin
        NotFoundError: target profile missing
        ValidationError: the adjustment would make the balance negative
        PersistenceError: the balance update failed
    """
    caller_id = require_user_id(claims)
    scoped_store = scoped_store or ScopedStore(claims)
    privileged_store = privileged_store or PrivilegedStore()

    try:
        caller = await scoped_store.get_profile(caller_id)
    except DatabaseError as e:
        logger.error("Failed to load caller profile", user_id=caller_id, error=str(e))
        caller = None

    if caller is None or not caller.is_admin:
        logger.warning("Non-admin attempted credit adjustment", user_id=caller_id)
        raise ForbiddenError("Forbidden: Only admins can manage credits", user_id=caller_id)

    transaction = CreditTransaction(
        user_id=request.user_id,
        amount=request.amount,
        type=request.transaction_type,
        package_name=request.description or DEFAULT_ADJUSTMENT_DESCRIPTION,
    )

    try:
        async with privileged_store.transaction() as session:
            try:
                profile = await session.lock_profile(request.user_id)
            except DatabaseError as e:
                raise NotFoundError("User profile not found.", user_id=request.user_id) from e

            if profile is None:
                raise NotFoundError("User profile not found.", user_id=request.user_id)

            new_credits = profile.credits + request.amount
            if new_credits < 0:
                raise ValidationError("Cannot set negative credits.", user_id=request.user_id)

            try:
                await session.set_credits(request.user_id, new_credits)
            except DatabaseError as e:
                raise PersistenceError(
                    f"Failed to update user credits: {e}", user_id=request.user_id
                ) from e

            ledger_recorded = await append_ledger_entry(session, transaction)

    except psycopg.Error as e:
        logger.error("Credit adjustment transaction failed", user_id=request.user_id, error=str(e))
        raise PersistenceError(
            f"Failed to update user credits: {e}", user_id=request.user_id
        ) from e

    logger.info(
        "Credits adjusted",
        admin_id=caller_id,
        user_id=request.user_id,
        amount=request.amount,
        new_credits=new_credits,
        ledger_recorded=ledger_recorded,
    )
    return new_credits
