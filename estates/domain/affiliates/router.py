"""Affiliate router - settlement jobs, manual payouts and click tracking"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...config import ADMIN_API_KEY
from ...database import get_db
from ...rate_limiter import FAIL_OPEN, create_rate_limiter, get_client_ip
from .click_service import ClickService
from .commission_service import CommissionService
from .payout_service import PayoutService
from .schemas import (
    CommissionRunResponse,
    PayoutRunResponse,
    RecordPayoutRequest,
    RecordPayoutResponse,
    TrackClickRequest,
)
from .stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/affiliates", tags=["Affiliates"])

# 100 clicks per minute per IP
track_click_rate_limit = create_rate_limiter(
    limit=100, window_seconds=60, key_prefix="track-affiliate-click", fail_mode=FAIL_OPEN
)


def get_stripe_gateway() -> StripeGateway:
    """Dependency injection for StripeGateway"""
    return StripeGateway()


def get_commission_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> CommissionService:
    """Dependency injection for CommissionService"""
    return CommissionService(db, gateway=gateway)


def get_payout_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> PayoutService:
    """Dependency injection for PayoutService"""
    return PayoutService(db, gateway=gateway)


def get_click_service(db: Session = Depends(get_db)) -> ClickService:
    """Dependency injection for ClickService"""
    return ClickService(db)


def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Admin-only endpoints authenticate with the X-Admin-Key header"""
    if not ADMIN_API_KEY:
        logger.error("❌ ADMIN_API_KEY not configured, rejecting admin request")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not x_admin_key or not secrets.compare_digest(x_admin_key, ADMIN_API_KEY):
        logger.warning("⚠️ Admin request with missing or invalid X-Admin-Key")
        raise HTTPException(status_code=401, detail="Unauthorized")


def stripe_not_configured() -> JSONResponse:
    logger.error("❌ STRIPE_SECRET_KEY is not set")
    return JSONResponse(status_code=500, content={"success": False, "error": "STRIPE_SECRET_KEY is not set"})


@router.post("/process-commissions", response_model=CommissionRunResponse)
def process_commissions(service: CommissionService = Depends(get_commission_service)):
    """Qualify or churn referrals whose qualification date has passed"""
    if not service.gateway.is_configured:
        return stripe_not_configured()
    return CommissionRunResponse(**service.process_commissions())


@router.post("/process-payouts", response_model=PayoutRunResponse)
async def process_payouts(service: PayoutService = Depends(get_payout_service)):
    """Transfer unpaid approved commissions to connected Stripe accounts"""
    if not service.gateway.is_configured:
        return stripe_not_configured()
    return PayoutRunResponse(**await service.process_payouts())


@router.post("/record-payout", response_model=RecordPayoutResponse, dependencies=[Depends(require_admin)])
async def record_payout(
    body: RecordPayoutRequest,
    service: PayoutService = Depends(get_payout_service),
):
    """Record a PayPal payout made outside Stripe (admin only)"""
    return await service.record_manual_payout(body.affiliate_id, body.paypal_transaction_id, body.admin_notes)


@router.post("/track-click", dependencies=[Depends(track_click_rate_limit)])
async def track_click(
    body: TrackClickRequest,
    request: Request,
    service: ClickService = Depends(get_click_service),
):
    """Record a referral link visit"""
    return service.track_click(
        referral_code=body.referral_code,
        client_ip=get_client_ip(request),
        user_agent=body.user_agent or request.headers.get("user-agent"),
        referrer_url=body.referrer_url,
        landing_page=body.landing_page,
        country_code=request.headers.get("cf-ipcountry"),
    )
