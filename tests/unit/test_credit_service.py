import pytest

from app.models.api.credit_request import ManageCreditsRequest
from app.models.domain.listing_domain import Profile
from app.services.credit_service import adjust_credits
from app.services.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

ADMIN_CLAIMS = {"sub": "admin-1"}


@pytest.fixture
def admin_db(fake_db):
    fake_db.profiles["admin-1"] = Profile(id="admin-1", credits=0, role="admin")
    return fake_db


async def _adjust(request, claims, scoped_store, privileged_store):
    return await adjust_credits(
        request, claims, scoped_store=scoped_store, privileged_store=privileged_store
    )


@pytest.mark.asyncio
async def test_admin_adds_credits(admin_db, scoped_store, privileged_store):
    request = ManageCreditsRequest(userId="user-123", amount=25, transactionType="admin_add")

    new_credits = await _adjust(request, ADMIN_CLAIMS, scoped_store, privileged_store)

    assert new_credits == 75
    assert admin_db.profiles["user-123"].credits == 75
    [entry] = admin_db.credit_transactions
    assert entry.amount == 25
    assert entry.type == "admin_add"
    assert entry.package_name == "Admin Adjustment"


@pytest.mark.asyncio
async def test_admin_subtract_uses_description(admin_db, scoped_store, privileged_store):
    request = ManageCreditsRequest(
        userId="user-123", amount=-20, transactionType="admin_subtract", description="Rimborso"
    )

    new_credits = await _adjust(request, ADMIN_CLAIMS, scoped_store, privileged_store)

    assert new_credits == 30
    assert admin_db.credit_transactions[0].package_name == "Rimborso"


@pytest.mark.asyncio
async def test_negative_balance_rejected(admin_db, scoped_store, privileged_store):
    request = ManageCreditsRequest(userId="user-456", amount=-6, transactionType="admin_subtract")

    with pytest.raises(ValidationError) as exc_info:
        await _adjust(request, ADMIN_CLAIMS, scoped_store, privileged_store)

    assert exc_info.value.message == "Cannot set negative credits."
    assert admin_db.profiles["user-456"].credits == 5
    assert admin_db.credit_transactions == []


@pytest.mark.asyncio
async def test_non_admin_forbidden(admin_db, owner_claims, scoped_store, privileged_store):
    request = ManageCreditsRequest(userId="user-123", amount=1000, transactionType="admin_add")

    with pytest.raises(ForbiddenError):
        await _adjust(request, owner_claims, scoped_store, privileged_store)

    assert admin_db.profiles["user-123"].credits == 50


@pytest.mark.asyncio
async def test_unauthenticated_rejected(admin_db, scoped_store, privileged_store):
    request = ManageCreditsRequest(userId="user-123", amount=1, transactionType="admin_add")

    with pytest.raises(UnauthorizedError):
        await _adjust(request, None, scoped_store, privileged_store)


@pytest.mark.asyncio
async def test_unknown_target_profile(admin_db, scoped_store, privileged_store):
    request = ManageCreditsRequest(userId="ghost", amount=1, transactionType="admin_add")

    with pytest.raises(NotFoundError):
        await _adjust(request, ADMIN_CLAIMS, scoped_store, privileged_store)


@pytest.mark.asyncio
async def test_ledger_failure_keeps_balance_change(admin_db, scoped_store, privileged_store):
    admin_db.fail_on.add("insert_credit_transaction")
    request = ManageCreditsRequest(userId="user-123", amount=5, transactionType="admin_add")

    new_credits = await _adjust(request, ADMIN_CLAIMS, scoped_store, privileged_store)

    assert new_credits == 55
    assert admin_db.profiles["user-123"].credits == 55
    assert admin_db.credit_transactions == []
