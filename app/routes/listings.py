"""
listings.py
-----------
Purpose:
    RPC-style endpoints for listing promotion and pause/resume.

Architecture:
    - API layer: request validation, caller claims, response models
    - Service layer: business rules, raises ServiceError subclasses
    - ServiceError -> {"error": message} is handled in app.main

Usage:
    POST /promote-listing       - buy a day/night promotion
    POST /pause-resume-listing  - pause or resume a listing
"""

from fastapi import APIRouter, Depends

from app.auth.verify import auth_dependency
from app.infrastructure.observability.logging import get_logger
from app.models.api.listing_request import PauseResumeListingRequest, PromoteListingRequest
from app.models.api.listing_response import ActionResponse, ErrorResponse
from app.services.listing_pause_service import pause_or_resume_listing
from app.services.promotion_service import promote_listing

router = APIRouter(tags=["listings"])
logger = get_logger(__name__)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}}


@router.post("/promote-listing", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def promote(request: PromoteListingRequest, claims: dict | None = Depends(auth_dependency)):
    """
    Purchase a promotion for the caller's listing.

    Raises:
        400: validation, ownership, balance or persistence failure
        401: no valid session
    """
    result = await promote_listing(request, claims)
    return ActionResponse(success=True, message=result.message)


@router.post("/pause-resume-listing", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def pause_resume(
    request: PauseResumeListingRequest, claims: dict | None = Depends(auth_dependency)
):
    message = await pause_or_resume_listing(request, claims)
    return ActionResponse(success=True, message=message)
