"""Affiliate repository - Database operations for referrals, commissions, payouts and clicks"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from ...models_affiliate import (
    Affiliate,
    AffiliateClick,
    AffiliateNotification,
    AffiliatePayout,
    AffiliateSetting,
    Commission,
    Referral,
    User,
)


def _claimable(stale_before: datetime):
    """pending, or processing under a claim older than stale_before"""
    return or_(
        Referral.status == "pending",
        and_(Referral.status == "processing", Referral.locked_at < stale_before),
    )


class AffiliateRepository:
    """Repository for affiliate program database operations"""

    @staticmethod
    def get_setting(db: Session, setting_key: str) -> Optional[AffiliateSetting]:
        return db.query(AffiliateSetting).filter(AffiliateSetting.setting_key == setting_key).first()

    @staticmethod
    def get_affiliate(db: Session, affiliate_id: int) -> Optional[Affiliate]:
        return db.query(Affiliate).options(joinedload(Affiliate.user)).filter(Affiliate.id == affiliate_id).first()

    @staticmethod
    def get_user_email(db: Session, user_id: int) -> Optional[str]:
        user = db.query(User).filter(User.id == user_id).first()
        return user.email if user else None

    # ------------------------------------------------------------------
    # Referrals

    @staticmethod
    def get_due_referrals(db: Session, now: datetime, stale_before: datetime) -> list[Referral]:
        """Referrals past their qualification date whose affiliate is approved"""
        return (
            db.query(Referral)
            .join(Affiliate, Referral.affiliate_id == Affiliate.id)
            .options(joinedload(Referral.affiliate))
            .filter(
                _claimable(stale_before),
                Referral.qualification_date <= now,
                Affiliate.status == "approved",
            )
            .order_by(Referral.qualification_date)
            .all()
        )

    @staticmethod
    def claim_referral(db: Session, referral_id: int, run_id: str, now: datetime, stale_before: datetime) -> bool:
        """Conditionally move a referral to processing; False when another run holds it"""
        updated = (
            db.query(Referral)
            .filter(Referral.id == referral_id, _claimable(stale_before))
            .update(
                {Referral.status: "processing", Referral.processing_by: run_id, Referral.locked_at: now},
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1

    @staticmethod
    def release_referral(db: Session, referral_id: int, run_id: str) -> None:
        db.query(Referral).filter(
            Referral.id == referral_id,
            Referral.status == "processing",
            Referral.processing_by == run_id,
        ).update(
            {Referral.status: "pending", Referral.processing_by: None, Referral.locked_at: None},
            synchronize_session=False,
        )
        db.commit()

    @staticmethod
    def _settle_claimed(db: Session, referral_id: int, run_id: str, values: dict) -> bool:
        """Final status write, only while run_id still holds the claim"""
        updated = (
            db.query(Referral)
            .filter(
                Referral.id == referral_id,
                Referral.status == "processing",
                Referral.processing_by == run_id,
            )
            .update(
                {**values, Referral.processing_by: None, Referral.locked_at: None},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def mark_churned(db: Session, referral_id: int, run_id: str, reason: str, now: datetime) -> bool:
        """False when the claim was lost to another run; nothing is written then"""
        churned = AffiliateRepository._settle_claimed(
            db,
            referral_id,
            run_id,
            {Referral.status: "churned", Referral.churned_at: now, Referral.churn_reason: reason},
        )
        if not churned:
            db.rollback()
            return False
        db.commit()
        return True

    @staticmethod
    def qualify_with_commission(
        db: Session,
        referral_id: int,
        run_id: str,
        affiliate: Affiliate,
        subscription_id: str,
        product_id: Optional[str],
        product_type: str,
        billing_period: str,
        gross_amount: float,
        commission_rate: float,
        commission_amount: float,
        currency: str,
        now: datetime,
    ) -> Optional[Commission]:
        """
        Mark the referral qualified and insert its approved commission in one commit

        Returns None without writing anything when run_id no longer holds the claim.
        """
        qualified = AffiliateRepository._settle_claimed(
            db,
            referral_id,
            run_id,
            {
                Referral.status: "qualified",
                Referral.qualified_at: now,
                Referral.first_subscription_id: subscription_id,
                Referral.first_subscription_product: product_id,
                Referral.first_subscription_amount: gross_amount,
            },
        )
        if not qualified:
            db.rollback()
            return None

        commission = Commission(
            affiliate_id=affiliate.id,
            referral_id=referral_id,
            product_type=product_type,
            billing_period=billing_period,
            gross_amount=gross_amount,
            commission_rate=commission_rate,
            commission_amount=commission_amount,
            currency=currency,
            status="approved",
            approved_at=now,
        )
        db.add(commission)
        affiliate.pending_earnings = (affiliate.pending_earnings or 0) + commission_amount
        db.commit()
        db.refresh(commission)
        return commission

    # ------------------------------------------------------------------
    # Payouts

    @staticmethod
    def get_payout_affiliates(db: Session) -> list[Affiliate]:
        """Approved affiliates with a connected Stripe account"""
        return (
            db.query(Affiliate)
            .options(joinedload(Affiliate.user))
            .filter(Affiliate.status == "approved", Affiliate.stripe_connect_id.isnot(None))
            .order_by(Affiliate.id)
            .all()
        )

    @staticmethod
    def set_connect_status(db: Session, affiliate: Affiliate, status: str) -> None:
        if affiliate.stripe_connect_status != status:
            affiliate.stripe_connect_status = status
            db.commit()

    @staticmethod
    def get_unpaid_commissions(db: Session, affiliate_id: int) -> list[Commission]:
        return (
            db.query(Commission)
            .filter(
                Commission.affiliate_id == affiliate_id,
                Commission.status == "approved",
                Commission.payout_id.is_(None),
            )
            .order_by(Commission.id)
            .all()
        )

    @staticmethod
    def get_payout_commissions(db: Session, payout_id: int) -> list[Commission]:
        return db.query(Commission).filter(Commission.payout_id == payout_id).order_by(Commission.id).all()

    @staticmethod
    def create_payout(db: Session, affiliate_id: int, amount: float, commission_count: int, **fields) -> AffiliatePayout:
        payout = AffiliatePayout(
            affiliate_id=affiliate_id,
            amount=amount,
            commission_count=commission_count,
            **fields,
        )
        db.add(payout)
        db.commit()
        db.refresh(payout)
        return payout

    @staticmethod
    def attach_commissions(db: Session, payout_id: int, commission_ids: list[int]) -> int:
        """Attach commissions still free of a payout; returns how many were attached"""
        if not commission_ids:
            return 0
        attached = (
            db.query(Commission)
            .filter(
                Commission.id.in_(commission_ids),
                Commission.status == "approved",
                Commission.payout_id.is_(None),
            )
            .update({Commission.payout_id: payout_id}, synchronize_session=False)
        )
        db.commit()
        return attached

    @staticmethod
    def complete_payout(
        db: Session,
        payout: AffiliatePayout,
        affiliate: Affiliate,
        now: datetime,
        notification: dict,
        stripe_transfer_id: Optional[str] = None,
    ) -> None:
        """Payout completed, its commissions paid, earnings moved and affiliate notified"""
        payout.status = "completed"
        payout.processed_at = now
        if stripe_transfer_id:
            payout.stripe_transfer_id = stripe_transfer_id

        db.query(Commission).filter(Commission.payout_id == payout.id).update(
            {Commission.status: "paid", Commission.paid_at: now},
            synchronize_session=False,
        )
        affiliate.pending_earnings = max((affiliate.pending_earnings or 0) - payout.amount, 0)
        affiliate.total_earnings = (affiliate.total_earnings or 0) + payout.amount
        db.add(AffiliateNotification(affiliate_id=affiliate.id, **notification))
        db.commit()

    @staticmethod
    def fail_payout(db: Session, payout: AffiliatePayout, reason: str) -> None:
        """Payout failed; its commissions go back to the unpaid pool"""
        payout.status = "failed"
        payout.failure_reason = reason
        db.query(Commission).filter(Commission.payout_id == payout.id).update(
            {Commission.payout_id: None},
            synchronize_session=False,
        )
        db.commit()

    # ------------------------------------------------------------------
    # Clicks

    @staticmethod
    def get_approved_affiliate_by_code(db: Session, referral_code: str) -> Optional[Affiliate]:
        return (
            db.query(Affiliate)
            .filter(Affiliate.referral_code == referral_code, Affiliate.status == "approved")
            .first()
        )

    @staticmethod
    def recent_click_exists(db: Session, affiliate_id: int, ip_hash: str, since: datetime) -> bool:
        return (
            db.query(AffiliateClick.id)
            .filter(
                AffiliateClick.affiliate_id == affiliate_id,
                AffiliateClick.ip_hash == ip_hash,
                AffiliateClick.created_at >= since,
            )
            .first()
            is not None
        )

    @staticmethod
    def create_click(db: Session, **click_data) -> AffiliateClick:
        click = AffiliateClick(**click_data)
        db.add(click)
        db.commit()
        db.refresh(click)
        return click
