# app/models/api/listing_response.py
from pydantic import BaseModel, ConfigDict, Field


class ActionResponse(BaseModel):
    """Success body shared by the listing endpoints."""

    success: bool = True
    message: str


class ManageCreditsResponse(BaseModel):
    """Response for POST /manage-credits"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_credits: int = Field(..., alias="newCredits")


class ErrorResponse(BaseModel):
    """Flat error body returned for every failure."""

    error: str
