"""
credits.py
----------
Purpose:
    Admin endpoint for manual credit adjustments.

Usage:
    POST /manage-credits
    {"userId": "...", "amount": -10, "transactionType": "admin_subtract", "description": "..."}
"""

from fastapi import APIRouter, Depends

from app.auth.verify import auth_dependency
from app.models.api.credit_request import ManageCreditsRequest
from app.models.api.listing_response import ErrorResponse, ManageCreditsResponse
from app.services.credit_service import adjust_credits

router = APIRouter(tags=["credits"])


@router.post(
    "/manage-credits",
    response_model=ManageCreditsResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def manage_credits(
    request: ManageCreditsRequest, claims: dict | None = Depends(auth_dependency)
):
    new_credits = await adjust_credits(request, claims)
    return ManageCreditsResponse(success=True, new_credits=new_credits)
