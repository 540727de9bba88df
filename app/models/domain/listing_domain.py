from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class PromotionMode(str, Enum):
    """The two paid visibility-boost products."""

    DAY = "day"
    NIGHT = "night"


class PromotionWindow(BaseModel):
    """Absolute UTC interval [start, end) during which a listing is boosted."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "PromotionWindow":
        if self.start >= self.end:
            raise ValueError("promotion window start must be before its end")
        return self


class Listing(BaseModel):
    """Listing row as seen by the promotion and pause flows."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    expires_at: datetime | None = None
    is_premium: bool = False
    promotion_mode: PromotionMode | None = None
    promotion_start_at: datetime | None = None
    promotion_end_at: datetime | None = None
    last_bumped_at: datetime | None = None

    # Pause bookkeeping
    is_paused: bool = False
    paused_at: datetime | None = None
    remaining_expires_at_duration: timedelta | None = None
    remaining_promotion_duration: timedelta | None = None


class Profile(BaseModel):
    """Profile row - only the columns the backend reads."""

    model_config = ConfigDict(extra="ignore")

    id: str
    credits: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class CreditTransaction(BaseModel):
    """Append-only credit ledger entry."""

    user_id: str
    amount: int
    type: str
    package_name: str
    created_at: datetime | None = None


class PromotionResult(BaseModel):
    """Outcome of a successful promotion purchase."""

    listing_id: str
    window: PromotionWindow
    expires_at: datetime
    remaining_credits: int
    ledger_recorded: bool
    message: str = "Annuncio promosso con successo!"
