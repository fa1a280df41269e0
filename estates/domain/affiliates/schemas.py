"""Affiliate domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator


class CommissionRunResponse(BaseModel):
    success: bool = True
    processed: int
    qualified: int
    churned: int
    skipped: int
    errors: int


class PayoutRunResponse(BaseModel):
    success: bool = True
    payouts_processed: int
    payouts_failed: int
    total_paid: float


class RecordPayoutRequest(BaseModel):
    """Manual PayPal payout recorded by an admin"""

    affiliate_id: int
    paypal_transaction_id: str
    admin_notes: Optional[str] = None

    @field_validator("paypal_transaction_id")
    @classmethod
    def validate_transaction_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("paypal_transaction_id is required")
        return v


class RecordPayoutResponse(BaseModel):
    success: bool
    payout_id: int
    amount: float
    commissions_paid: int


class TrackClickRequest(BaseModel):
    referral_code: str
    landing_page: Optional[str] = None
    referrer_url: Optional[str] = None
    user_agent: Optional[str] = None

    @field_validator("referral_code")
    @classmethod
    def validate_referral_code(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("No referral code provided")
        return v
