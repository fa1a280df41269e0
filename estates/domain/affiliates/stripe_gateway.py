"""Stripe gateway - the subscription lookups and Connect transfers used by affiliate jobs"""

import logging
from dataclasses import dataclass
from typing import Optional

import stripe

from ...config import STRIPE_API_VERSION, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)

stripe.api_key = STRIPE_SECRET_KEY
stripe.api_version = STRIPE_API_VERSION


class PaymentGatewayError(Exception):
    """Stripe call failed; the unit of work that triggered it should be retried later"""


@dataclass
class ActiveSubscription:
    subscription_id: str
    product_id: Optional[str]
    amount: float  # major units
    interval: str  # month, year
    currency: str


class StripeGateway:
    """Wraps the stripe SDK calls so services only see plain values"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key or STRIPE_SECRET_KEY

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def find_customer_id(self, email: str) -> Optional[str]:
        try:
            customers = stripe.Customer.list(email=email, limit=1, api_key=self.api_key)
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Customer lookup failed: {e}") from e
        return customers.data[0]["id"] if customers.data else None

    def find_active_subscription(self, customer_id: str) -> Optional[ActiveSubscription]:
        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id, status="active", limit=1, api_key=self.api_key
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Subscription lookup failed: {e}") from e

        if not subscriptions.data:
            return None

        subscription = subscriptions.data[0]
        items = subscription["items"]["data"]
        price = items[0]["price"] if items else {}
        product = price.get("product")
        product_id = product if isinstance(product, str) or product is None else product.get("id")
        recurring = price.get("recurring") or {}

        return ActiveSubscription(
            subscription_id=subscription["id"],
            product_id=product_id,
            amount=(price.get("unit_amount") or 0) / 100,
            interval=recurring.get("interval") or "month",
            currency=(price.get("currency") or "usd").upper(),
        )

    def payouts_enabled(self, account_id: str) -> bool:
        try:
            account = stripe.Account.retrieve(account_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Account lookup failed: {e}") from e
        if not account.get("payouts_enabled"):
            logger.info(
                f"Payouts not enabled for account {account_id} "
                f"(details_submitted={account.get('details_submitted')})"
            )
            return False
        return True

    def create_transfer(
        self,
        amount_minor: int,
        currency: str,
        destination: str,
        metadata: dict,
        idempotency_key: str,
    ) -> str:
        """Transfer to a connected account; returns the transfer id"""
        try:
            transfer = stripe.Transfer.create(
                amount=amount_minor,
                currency=currency,
                destination=destination,
                metadata=metadata,
                idempotency_key=idempotency_key,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise PaymentGatewayError(f"Transfer failed: {e}") from e
        return transfer["id"]
