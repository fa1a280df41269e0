"""Payout service - pays approved commissions out to affiliates"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import Cache
from ...config import PAYOUT_CURRENCY
from ...email_service import send_payout_sent_email
from ...models_affiliate import Affiliate
from .repository import AffiliateRepository
from .settings import AffiliateSettings
from .stripe_gateway import PaymentGatewayError, StripeGateway

logger = logging.getLogger(__name__)


def payout_notification(amount: float, commission_count: int, payout_id: int, destination: str, **extra) -> dict:
    return {
        "notification_type": "payout_completed",
        "title": "Payout Sent!",
        "message": f"${amount:.2f} has been sent to your {destination}.",
        "extra_data": {"payout_id": payout_id, "amount": amount, "commission_count": commission_count, **extra},
        "delivery_method": "both",
    }


class PayoutService:
    """Stripe Connect payouts plus manually recorded PayPal payouts"""

    def __init__(
        self,
        db: Session,
        gateway: Optional[StripeGateway] = None,
        cache_backend: Optional[Cache] = None,
        currency: str = PAYOUT_CURRENCY,
    ):
        self.db = db
        self.repo = AffiliateRepository()
        self.gateway = gateway or StripeGateway()
        self.settings = AffiliateSettings(db, cache_backend=cache_backend)
        self.currency = currency

    async def process_payouts(self, now: Optional[datetime] = None) -> dict:
        """
        Pay every eligible affiliate their unpaid approved commissions

        Returns:
            {"payouts_processed", "payouts_failed", "total_paid"}
        """
        now = now or datetime.utcnow()
        minimum = self.settings.minimum_payout_amount
        logger.info(f"💰 [Payouts] Starting run (minimum payout {minimum:.2f})")

        affiliates = self.repo.get_payout_affiliates(self.db)
        logger.info(f"[Payouts] Found {len(affiliates)} affiliates with Stripe Connect")

        processed = 0
        failed = 0
        total_paid = 0.0

        for affiliate in affiliates:
            affiliate_id = affiliate.id
            try:
                outcome, amount = await self._pay_affiliate(affiliate, minimum, now)
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ [Payouts] Error processing affiliate {affiliate_id}: {e}")
                continue

            if outcome == "completed":
                processed += 1
                total_paid += amount
            elif outcome == "failed":
                failed += 1

        summary = {"payouts_processed": processed, "payouts_failed": failed, "total_paid": round(total_paid, 2)}
        logger.info(f"🏁 [Payouts] Run complete: {summary}")
        return summary

    async def _pay_affiliate(self, affiliate: Affiliate, minimum: float, now: datetime) -> tuple[str, float]:
        """Returns (outcome, amount) where outcome is completed, failed or skipped"""
        if not self.gateway.payouts_enabled(affiliate.stripe_connect_id):
            self.repo.set_connect_status(self.db, affiliate, "pending")
            return "skipped", 0.0
        self.repo.set_connect_status(self.db, affiliate, "active")

        commissions = self.repo.get_unpaid_commissions(self.db, affiliate.id)
        if not commissions:
            logger.info(f"[Payouts] No approved commissions for affiliate {affiliate.id}")
            return "skipped", 0.0

        total = round(sum(c.commission_amount for c in commissions), 2)
        if total < minimum:
            logger.info(f"[Payouts] Affiliate {affiliate.id} below minimum ({total:.2f} < {minimum:.2f})")
            return "skipped", 0.0

        commission_ids = [c.id for c in commissions]
        payout = self.repo.create_payout(
            self.db,
            affiliate.id,
            total,
            len(commission_ids),
            currency=self.currency.upper(),
            status="processing",
            payout_method="stripe_connect",
        )

        attached = self.repo.attach_commissions(self.db, payout.id, commission_ids)
        if attached != len(commission_ids):
            # Another run took some of these commissions between the read and the attach
            self.repo.fail_payout(self.db, payout, "Commissions changed during payout; retry on next run")
            logger.warning(f"⚠️ [Payouts] Commission set changed for affiliate {affiliate.id}, skipping")
            return "skipped", 0.0

        try:
            transfer_id = self.gateway.create_transfer(
                amount_minor=int(round(total * 100)),
                currency=self.currency.lower(),
                destination=affiliate.stripe_connect_id,
                metadata={
                    "payout_id": str(payout.id),
                    "affiliate_id": str(affiliate.id),
                    "commission_count": str(len(commission_ids)),
                },
                idempotency_key=f"payout-{payout.id}",
            )
        except PaymentGatewayError as e:
            logger.error(f"❌ [Payouts] Stripe transfer failed for payout {payout.id}: {e}")
            self.repo.fail_payout(self.db, payout, str(e))
            return "failed", 0.0

        logger.info(f"✅ [Payouts] Transfer {transfer_id} created: {total:.2f} to affiliate {affiliate.id}")
        self.repo.complete_payout(
            self.db,
            payout,
            affiliate,
            now,
            notification=payout_notification(total, len(commission_ids), payout.id, "connected Stripe account"),
            stripe_transfer_id=transfer_id,
        )
        await self._send_payout_email(affiliate, total, len(commission_ids), "connected Stripe account")
        return "completed", total

    async def record_manual_payout(
        self,
        affiliate_id: int,
        paypal_transaction_id: str,
        admin_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """Record a PayPal payout made outside Stripe for all unpaid approved commissions"""
        now = now or datetime.utcnow()
        logger.info(f"📝 [Manual Payout] Recording PayPal payout {paypal_transaction_id} for affiliate {affiliate_id}")

        affiliate = self.repo.get_affiliate(self.db, affiliate_id)
        if not affiliate:
            raise HTTPException(status_code=404, detail="Affiliate not found")

        commissions = self.repo.get_unpaid_commissions(self.db, affiliate_id)
        if not commissions:
            raise HTTPException(status_code=400, detail="No approved commissions found for payout")

        total = round(sum(c.commission_amount for c in commissions), 2)
        commission_ids = [c.id for c in commissions]
        payout = self.repo.create_payout(
            self.db,
            affiliate_id,
            total,
            len(commission_ids),
            currency="USD",
            status="processing",
            payout_method="paypal",
            paypal_transaction_id=paypal_transaction_id,
            admin_notes=admin_notes,
        )

        if self.repo.attach_commissions(self.db, payout.id, commission_ids) != len(commission_ids):
            self.repo.fail_payout(self.db, payout, "Commissions changed while recording payout")
            raise HTTPException(status_code=409, detail="Commissions changed while recording payout, retry")

        self.repo.complete_payout(
            self.db,
            payout,
            affiliate,
            now,
            notification=payout_notification(
                total,
                len(commission_ids),
                payout.id,
                "PayPal account",
                paypal_transaction_id=paypal_transaction_id,
            ),
        )
        await self._send_payout_email(affiliate, total, len(commission_ids), "PayPal account")
        logger.info(f"✅ [Manual Payout] Payout {payout.id} recorded: {total:.2f} for {len(commission_ids)} commissions")

        return {
            "success": True,
            "payout_id": payout.id,
            "amount": total,
            "commissions_paid": len(commission_ids),
        }

    async def _send_payout_email(self, affiliate: Affiliate, amount: float, commission_count: int, method_label: str):
        user = affiliate.user
        if not user or not user.email:
            return
        try:
            await send_payout_sent_email(
                to=user.email,
                affiliate_name=user.full_name or "there",
                amount=amount,
                commission_count=commission_count,
                method_label=method_label,
            )
        except Exception as e:
            logger.error(f"❌ [Payouts] Failed to send payout email to affiliate {affiliate.id}: {e}")
