"""
Affiliate program models: referrals, commissions and payouts
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    """Platform member; only the fields the affiliate jobs need"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Affiliate(Base):
    __tablename__ = "affiliates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    referral_code = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(50), default="pending")  # pending, approved, rejected, suspended
    # Falls back to the program default when null
    commission_rate = Column(Float, nullable=True)

    stripe_connect_id = Column(String(255), nullable=True)
    stripe_connect_status = Column(String(50), nullable=True)  # pending, active

    pending_earnings = Column(Float, default=0)
    total_earnings = Column(Float, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    referrals = relationship("Referral", back_populates="affiliate")
    commissions = relationship("Commission", back_populates="affiliate")


class AffiliateSetting(Base):
    """Program-wide knobs stored as JSON, e.g. {"rate": 0.5}"""

    __tablename__ = "affiliate_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), unique=True, nullable=False, index=True)
    setting_value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Referral(Base):
    __tablename__ = "referrals"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id"), nullable=False, index=True)
    referred_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(String(50), default="pending", index=True)  # pending, processing, qualified, churned
    qualification_date = Column(DateTime, nullable=False)

    # Claim marker set by the settlement run that is working on this row
    processing_by = Column(String(64), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    qualified_at = Column(DateTime, nullable=True)
    first_subscription_id = Column(String(255), nullable=True)
    first_subscription_product = Column(String(255), nullable=True)
    first_subscription_amount = Column(Float, nullable=True)

    churned_at = Column(DateTime, nullable=True)
    churn_reason = Column(String(50), nullable=True)  # no_subscription, subscription_cancelled

    created_at = Column(DateTime, server_default=func.now())

    affiliate = relationship("Affiliate", back_populates="referrals")
    referred_user = relationship("User")


class Commission(Base):
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id"), nullable=False, index=True)
    referral_id = Column(Integer, ForeignKey("referrals.id"), nullable=False, index=True)
    # Set once the commission is attached to a payout; at most one payout per commission
    payout_id = Column(Integer, ForeignKey("affiliate_payouts.id"), nullable=True, index=True)

    product_type = Column(String(100), default="unknown")
    billing_period = Column(String(20), default="monthly")  # monthly, annual
    gross_amount = Column(Float, nullable=False)
    commission_rate = Column(Float, nullable=False)
    commission_amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")

    status = Column(String(50), default="approved")  # approved, paid
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    affiliate = relationship("Affiliate", back_populates="commissions")
    payout = relationship("AffiliatePayout", back_populates="commissions")


class AffiliatePayout(Base):
    __tablename__ = "affiliate_payouts"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id"), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD")
    commission_count = Column(Integer, default=0)
    status = Column(String(50), default="processing")  # processing, completed, failed

    payout_method = Column(String(50), default="stripe_connect")  # stripe_connect, paypal
    stripe_transfer_id = Column(String(255), nullable=True)
    paypal_transaction_id = Column(String(255), nullable=True)
    failure_reason = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    commissions = relationship("Commission", back_populates="payout")


class AffiliateNotification(Base):
    __tablename__ = "affiliate_notifications"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id"), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    extra_data = Column("metadata", JSON, nullable=True)
    delivery_method = Column(String(20), default="both")  # in_app, email, both
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class AffiliateClick(Base):
    __tablename__ = "affiliate_clicks"

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id"), nullable=False, index=True)
    ip_hash = Column(String(64), nullable=False, index=True)
    user_agent = Column(String(500), nullable=True)
    referrer_url = Column(String(1000), nullable=True)
    landing_page = Column(String(1000), nullable=True)
    country_code = Column(String(8), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
