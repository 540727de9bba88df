from datetime import UTC, datetime, timedelta

import pytest

from app.models.api.listing_request import PauseResumeListingRequest
from app.models.domain.listing_domain import Listing
from app.services.errors import ForbiddenError, NotFoundError, PersistenceError
from app.services.listing_pause_service import (
    build_pause_update,
    build_resume_update,
    pause_or_resume_listing,
)

NOW = datetime(2024, 6, 1, 10, 0, tzinfo=UTC)


def _promoted_listing(**overrides) -> Listing:
    fields = {
        "id": "listing-1",
        "user_id": "user-123",
        "expires_at": NOW + timedelta(days=10),
        "is_premium": True,
        "promotion_mode": "night",
        "promotion_start_at": NOW - timedelta(hours=1),
        "promotion_end_at": NOW + timedelta(hours=5),
    }
    fields.update(overrides)
    return Listing(**fields)


def test_build_pause_update_freezes_remaining_durations():
    update = build_pause_update(_promoted_listing(), NOW)

    assert update == {
        "is_paused": True,
        "paused_at": NOW,
        "remaining_expires_at_duration": timedelta(days=10),
        "expires_at": None,
        "remaining_promotion_duration": timedelta(hours=5),
        "promotion_start_at": None,
        "promotion_end_at": None,
    }


def test_build_pause_update_without_promotion():
    listing = _promoted_listing(promotion_mode=None, promotion_start_at=None, promotion_end_at=None)

    update = build_pause_update(listing, NOW)

    assert "remaining_promotion_duration" not in update
    assert "promotion_end_at" not in update


def test_build_resume_update_restores_from_now():
    listing = _promoted_listing(
        is_paused=True,
        expires_at=None,
        promotion_start_at=None,
        promotion_end_at=None,
        remaining_expires_at_duration=timedelta(days=10),
        remaining_promotion_duration=timedelta(hours=5),
    )

    update = build_resume_update(listing, NOW)

    assert update["expires_at"] == NOW + timedelta(days=10)
    assert update["promotion_start_at"] == NOW
    assert update["promotion_end_at"] == NOW + timedelta(hours=5)
    assert update["is_paused"] is False
    assert update["remaining_promotion_duration"] is None


def test_build_resume_update_without_remaining_duration_expires_now():
    listing = _promoted_listing(is_paused=True, expires_at=None)

    update = build_resume_update(listing, NOW)

    assert update["expires_at"] == NOW
    assert "promotion_start_at" not in update


def test_build_pause_update_drops_finished_promotion():
    listing = _promoted_listing(
        promotion_start_at=NOW - timedelta(days=2), promotion_end_at=NOW - timedelta(days=1)
    )

    update = build_pause_update(listing, NOW)

    assert update["remaining_promotion_duration"] is None
    assert update["promotion_start_at"] is None
    assert update["promotion_end_at"] is None
    assert update["promotion_mode"] is None
    assert update["is_premium"] is False


def test_build_resume_update_ignores_non_positive_promotion_duration():
    listing = _promoted_listing(
        is_paused=True,
        expires_at=None,
        promotion_start_at=None,
        promotion_end_at=None,
        remaining_expires_at_duration=timedelta(days=10),
        remaining_promotion_duration=-timedelta(days=1),
    )

    update = build_resume_update(listing, NOW)

    assert "promotion_start_at" not in update
    assert "promotion_end_at" not in update
    assert update["promotion_mode"] is None
    assert update["remaining_promotion_duration"] is None


@pytest.mark.asyncio
async def test_pause_after_promotion_ended_then_resume_keeps_no_window(
    fake_db, owner_claims, scoped_store, privileged_store
):
    fake_db.listings["listing-1"] = _promoted_listing(
        promotion_mode="day",
        promotion_start_at=NOW - timedelta(days=2),
        promotion_end_at=NOW - timedelta(days=1),
    )

    await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="pause"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=NOW,
    )
    later = NOW + timedelta(days=2)
    await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="resume"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=later,
    )

    resumed = fake_db.listings["listing-1"]
    assert resumed.is_paused is False
    assert resumed.expires_at == later + timedelta(days=10)
    assert resumed.promotion_mode is None
    assert resumed.is_premium is False
    assert resumed.promotion_start_at is None
    assert resumed.promotion_end_at is None


@pytest.mark.asyncio
async def test_pause_then_resume_round_trip(fake_db, owner_claims, scoped_store, privileged_store):
    fake_db.listings["listing-1"] = _promoted_listing()

    message = await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="pause"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=NOW,
    )
    assert message == "Listing paused successfully."
    paused = fake_db.listings["listing-1"]
    assert paused.is_paused is True
    assert paused.expires_at is None

    later = NOW + timedelta(days=3)
    message = await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="resume"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=later,
    )
    assert message == "Listing resumed successfully."
    resumed = fake_db.listings["listing-1"]
    assert resumed.is_paused is False
    assert resumed.expires_at == later + timedelta(days=10)
    assert resumed.promotion_start_at == later
    assert resumed.promotion_end_at == later + timedelta(hours=5)


@pytest.mark.asyncio
async def test_pause_already_paused_is_noop(fake_db, owner_claims, scoped_store, privileged_store):
    fake_db.listings["listing-1"] = _promoted_listing(is_paused=True)

    message = await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="pause"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=NOW,
    )

    assert message == "Listing is already paused."
    assert fake_db.commits == 0


@pytest.mark.asyncio
async def test_resume_not_paused_is_noop(fake_db, owner_claims, scoped_store, privileged_store):
    message = await pause_or_resume_listing(
        PauseResumeListingRequest(listingId="listing-1", action="resume"),
        owner_claims,
        scoped_store=scoped_store,
        privileged_store=privileged_store,
        now=NOW,
    )

    assert message == "Listing is not paused."


@pytest.mark.asyncio
async def test_pause_foreign_listing_forbidden(fake_db, scoped_store, privileged_store):
    with pytest.raises(ForbiddenError):
        await pause_or_resume_listing(
            PauseResumeListingRequest(listingId="listing-1", action="pause"),
            {"sub": "user-456"},
            scoped_store=scoped_store,
            privileged_store=privileged_store,
            now=NOW,
        )


@pytest.mark.asyncio
async def test_pause_missing_listing(fake_db, owner_claims, scoped_store, privileged_store):
    with pytest.raises(NotFoundError):
        await pause_or_resume_listing(
            PauseResumeListingRequest(listingId="nope", action="pause"),
            owner_claims,
            scoped_store=scoped_store,
            privileged_store=privileged_store,
            now=NOW,
        )


@pytest.mark.asyncio
async def test_pause_update_failure(fake_db, owner_claims, scoped_store, privileged_store):
    fake_db.listings["listing-1"] = _promoted_listing()
    fake_db.fail_on.add("update_listing")

    with pytest.raises(PersistenceError) as exc_info:
        await pause_or_resume_listing(
            PauseResumeListingRequest(listingId="listing-1", action="pause"),
            owner_claims,
            scoped_store=scoped_store,
            privileged_store=privileged_store,
            now=NOW,
        )

    assert exc_info.value.message.startswith("Failed to pause listing")
    assert fake_db.listings["listing-1"].is_paused is False
