"""Affiliate program settings read from affiliate_settings, cached"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...cache import CACHE_KEYS, CACHE_TTL, Cache, cache
from ...config import DEFAULT_COMMISSION_RATE, MINIMUM_PAYOUT_AMOUNT, QUALIFICATION_PERIOD_DAYS
from .repository import AffiliateRepository

logger = logging.getLogger(__name__)


class AffiliateSettings:
    """Typed accessors over the JSON setting rows.

    Row shapes: qualification_period_days {"days": n}, default_commission_rate {"rate": r},
    minimum_payout_amount {"amount": a}.
    """

    def __init__(self, db: Session, cache_backend: Optional[Cache] = None):
        self.db = db
        self.repo = AffiliateRepository()
        self.cache = cache_backend or cache

    def _value(self, setting_key: str) -> dict:
        def load():
            row = self.repo.get_setting(self.db, setting_key)
            return row.setting_value if row and isinstance(row.setting_value, dict) else {}

        return self.cache.get_or_fetch(CACHE_KEYS.affiliate_setting(setting_key), load, CACHE_TTL["medium"]) or {}

    def _field(self, setting_key: str, field: str, default):
        """Configured value, including 0; default only when the row or field is missing"""
        value = self._value(setting_key).get(field)
        return default if value is None else value

    @property
    def qualification_period_days(self) -> int:
        return int(self._field("qualification_period_days", "days", QUALIFICATION_PERIOD_DAYS))

    @property
    def default_commission_rate(self) -> float:
        return float(self._field("default_commission_rate", "rate", DEFAULT_COMMISSION_RATE))

    @property
    def minimum_payout_amount(self) -> float:
        return float(self._field("minimum_payout_amount", "amount", MINIMUM_PAYOUT_AMOUNT))
