from pydantic import BaseModel, ConfigDict, Field


class ManageCreditsRequest(BaseModel):
    """Request body for POST /manage-credits (admin only)."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1, description="Profile to adjust")
    amount: int = Field(..., strict=True, description="Signed credit delta")
    transaction_type: str = Field(
        ..., alias="transactionType", min_length=1, description="e.g. admin_add, admin_subtract"
    )
    description: str | None = Field(default=None, description="Ledger description")
