"""Click tracking service - records referral link visits"""

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import CLICK_HASH_SECRET
from .repository import AffiliateRepository

logger = logging.getLogger(__name__)

DUPLICATE_CLICK_WINDOW = timedelta(hours=24)


def hash_ip(ip: str, secret: str = CLICK_HASH_SECRET) -> str:
    """Salted SHA-256 of the client IP, first 32 hex chars"""
    return hashlib.sha256(f"{ip}{secret}".encode()).hexdigest()[:32]


def _truncate(value: Optional[str], limit: int) -> Optional[str]:
    return value[:limit] if value else None


class ClickService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = AffiliateRepository()

    def track_click(
        self,
        referral_code: str,
        client_ip: str,
        user_agent: Optional[str] = None,
        referrer_url: Optional[str] = None,
        landing_page: Optional[str] = None,
        country_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        now = now or datetime.utcnow()
        affiliate = self.repo.get_approved_affiliate_by_code(self.db, referral_code.strip().upper())
        if not affiliate:
            logger.info(f"[Track Click] Affiliate not found or not approved: {referral_code}")
            raise HTTPException(status_code=404, detail="Invalid referral code")

        ip_hash = hash_ip(client_ip)
        if self.repo.recent_click_exists(self.db, affiliate.id, ip_hash, now - DUPLICATE_CLICK_WINDOW):
            logger.info(f"[Track Click] Duplicate click for affiliate {affiliate.id}, skipping")
            return {"success": True, "duplicate": True}

        self.repo.create_click(
            self.db,
            affiliate_id=affiliate.id,
            ip_hash=ip_hash,
            user_agent=_truncate(user_agent, 500),
            referrer_url=_truncate(referrer_url, 1000),
            landing_page=_truncate(landing_page, 1000),
            country_code=country_code,
            created_at=now,
        )
        logger.info(f"✅ [Track Click] Click recorded for affiliate {affiliate.id}")
        return {"success": True}
