"""Commission service - settles referrals whose qualification period has elapsed"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import Cache
from ...config import CLAIM_TIMEOUT_MINUTES
from .repository import AffiliateRepository
from .settings import AffiliateSettings
from .stripe_gateway import PaymentGatewayError, StripeGateway

logger = logging.getLogger(__name__)

# Substring of the Stripe product id -> commission product type, first match wins
PRODUCT_TYPE_KEYWORDS = [
    ("investor", "dubai_investor"),
    ("elite", "dubai_elite"),
    ("private", "dubai_private"),
    ("preferred", "agent_preferred"),
    ("premium", "agent_premium"),
]


def product_type_for(product_id: Optional[str]) -> str:
    if not product_id:
        return "unknown"
    for keyword, product_type in PRODUCT_TYPE_KEYWORDS:
        if keyword in product_id:
            return product_type
    return product_id


def billing_period_for(interval: str) -> str:
    return "annual" if interval == "year" else "monthly"


def calculate_commission(gross_amount: float, affiliate_rate: Optional[float], default_rate: float) -> tuple[float, float]:
    """Returns (rate, commission_amount); the affiliate's own rate wins when set"""
    rate = affiliate_rate if affiliate_rate is not None else default_rate
    return rate, round(gross_amount * rate, 2)


class CommissionService:
    """Qualifies or churns due referrals and books approved commissions"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[StripeGateway] = None,
        cache_backend: Optional[Cache] = None,
        claim_timeout_minutes: int = CLAIM_TIMEOUT_MINUTES,
    ):
        self.db = db
        self.repo = AffiliateRepository()
        self.gateway = gateway or StripeGateway()
        self.settings = AffiliateSettings(db, cache_backend=cache_backend)
        self.claim_timeout = timedelta(minutes=claim_timeout_minutes)

    def process_commissions(self, now: Optional[datetime] = None, run_id: Optional[str] = None) -> dict:
        """
        Settle every due referral once

        Returns:
            {"processed", "qualified", "churned", "skipped", "errors"}
        """
        now = now or datetime.utcnow()
        run_id = run_id or uuid.uuid4().hex
        stale_before = now - self.claim_timeout

        logger.info(
            f"💸 [Commissions] Run {run_id[:8]} started "
            f"(qualification period {self.settings.qualification_period_days} days)"
        )
        default_rate = self.settings.default_commission_rate

        referrals = self.repo.get_due_referrals(self.db, now, stale_before)
        logger.info(f"[Commissions] Found {len(referrals)} due referrals")

        stats = {"processed": 0, "qualified": 0, "churned": 0, "skipped": 0, "errors": 0}

        for referral in referrals:
            referral_id = referral.id
            if not self.repo.claim_referral(self.db, referral_id, run_id, now, stale_before):
                logger.info(f"⏭️ [Commissions] Referral {referral_id} claimed by another run")
                stats["skipped"] += 1
                continue

            try:
                outcome = self._settle(referral, default_rate, now, run_id)
            except Exception as e:
                if isinstance(e, PaymentGatewayError):
                    logger.error(f"❌ [Commissions] Payment lookup failed for referral {referral_id}: {e}")
                else:
                    logger.error(f"❌ [Commissions] Error processing referral {referral_id}: {e}")
                self.db.rollback()
                self.repo.release_referral(self.db, referral_id, run_id)
                stats["errors"] += 1
                continue

            if outcome == "skipped":
                stats["skipped"] += 1
                continue
            stats["processed"] += 1
            stats[outcome] += 1

        logger.info(f"🏁 [Commissions] Processing complete: {stats}")
        return stats

    def _settle(self, referral, default_rate: float, now: datetime, run_id: str) -> str:
        """Returns "qualified", "churned" or "skipped" """
        email = self.repo.get_user_email(self.db, referral.referred_user_id)
        if not email:
            logger.warning(f"⚠️ [Commissions] No email for user {referral.referred_user_id}, releasing referral {referral.id}")
            self.repo.release_referral(self.db, referral.id, run_id)
            return "skipped"

        referral_id = referral.id
        customer_id = self.gateway.find_customer_id(email)
        if customer_id is None:
            logger.info(f"[Commissions] No Stripe customer for referral {referral_id}, marking churned")
            return self._churn(referral_id, run_id, "no_subscription", now)

        subscription = self.gateway.find_active_subscription(customer_id)
        if subscription is None:
            logger.info(f"[Commissions] No active subscription for {customer_id}, marking churned")
            return self._churn(referral_id, run_id, "subscription_cancelled", now)

        affiliate = referral.affiliate
        rate, amount = calculate_commission(subscription.amount, affiliate.commission_rate, default_rate)
        commission = self.repo.qualify_with_commission(
            self.db,
            referral_id,
            run_id,
            affiliate,
            subscription_id=subscription.subscription_id,
            product_id=subscription.product_id,
            product_type=product_type_for(subscription.product_id),
            billing_period=billing_period_for(subscription.interval),
            gross_amount=subscription.amount,
            commission_rate=rate,
            commission_amount=amount,
            currency=subscription.currency,
            now=now,
        )
        if commission is None:
            logger.warning(f"⚠️ [Commissions] Lost claim on referral {referral_id} to another run, no commission booked")
            return "skipped"
        logger.info(f"✅ [Commissions] Commission created for affiliate {affiliate.id}: {amount:.2f} {subscription.currency}")
        return "qualified"

    def _churn(self, referral_id: int, run_id: str, reason: str, now: datetime) -> str:
        if not self.repo.mark_churned(self.db, referral_id, run_id, reason, now):
            logger.warning(f"⚠️ [Commissions] Lost claim on referral {referral_id} to another run, not churning")
            return "skipped"
        return "churned"
