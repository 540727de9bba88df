"""
Listing API request models.
Field aliases match the camelCase bodies the web client already sends.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.domain.listing_domain import PromotionMode
from app.services.errors import ValidationError
from app.services.promotion_window import parse_time_slot


class PromoteListingRequest(BaseModel):
    """Request body for POST /promote-listing."""

    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(..., alias="listingId", min_length=1, description="Listing to promote")
    promotion_type: PromotionMode = Field(..., alias="promotionType", description="day or night")
    cost: int = Field(..., gt=0, strict=True, description="Price in credits")
    duration_hours: int = Field(
        ..., alias="durationHours", gt=0, strict=True, description="Promoted coverage in hours"
    )
    time_slot: str | None = Field(
        default=None,
        alias="timeSlot",
        description="Local one-hour window HH:MM-HH:MM, required for day promotions",
    )
    timezone_offset_minutes: int = Field(
        ...,
        alias="timezoneOffsetMinutes",
        ge=-840,
        le=840,
        strict=True,
        description="Browser getTimezoneOffset() value (UTC = local + offset)",
    )

    @model_validator(mode="after")
    def check_time_slot(self) -> "PromoteListingRequest":
        if self.promotion_type is PromotionMode.DAY:
            if not self.time_slot:
                raise ValueError("timeSlot is required for day promotions")
            try:
                parse_time_slot(self.time_slot)
            except ValidationError as e:
                raise ValueError(e.message) from e
        return self


class PauseResumeListingRequest(BaseModel):
    """Request body for POST /pause-resume-listing."""

    model_config = ConfigDict(populate_by_name=True)

    listing_id: str = Field(..., alias="listingId", min_length=1)
    action: Literal["pause", "resume"]
