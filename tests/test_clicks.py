from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from estates.domain.affiliates.click_service import ClickService, hash_ip
from estates.models_affiliate import AffiliateClick


class TestHashIp:
    def test_salted_and_truncated(self):
        hashed = hash_ip("203.0.113.7", "pepper")
        assert len(hashed) == 32
        assert hashed == hash_ip("203.0.113.7", "pepper")
        assert hashed != hash_ip("203.0.113.7", "salt")
        assert "203.0.113.7" not in hashed


class TestTrackClick:
    def test_records_click(self, db, factory):
        affiliate = factory.affiliate()

        result = ClickService(db).track_click(
            "dubai10",
            "203.0.113.7",
            user_agent="Mozilla/5.0",
            referrer_url="https://instagram.com/p/abc",
            landing_page="/listings/dubai-marina",
            country_code="AE",
        )

        assert result == {"success": True}
        click = db.query(AffiliateClick).one()
        assert click.affiliate_id == affiliate.id
        assert click.ip_hash == hash_ip("203.0.113.7")
        assert click.country_code == "AE"

    def test_duplicate_within_a_day(self, db, factory):
        factory.affiliate()
        service = ClickService(db)
        now = datetime.utcnow()

        service.track_click("DUBAI10", "203.0.113.7", now=now)
        result = service.track_click("DUBAI10", "203.0.113.7", now=now + timedelta(hours=3))

        assert result == {"success": True, "duplicate": True}
        assert db.query(AffiliateClick).count() == 1

    def test_counted_again_after_a_day(self, db, factory):
        factory.affiliate()
        service = ClickService(db)
        now = datetime.utcnow()

        service.track_click("DUBAI10", "203.0.113.7", now=now)
        result = service.track_click("DUBAI10", "203.0.113.7", now=now + timedelta(hours=25))

        assert result == {"success": True}
        assert db.query(AffiliateClick).count() == 2

    def test_other_ip_is_not_a_duplicate(self, db, factory):
        factory.affiliate()
        service = ClickService(db)
        service.track_click("DUBAI10", "203.0.113.7")
        service.track_click("DUBAI10", "198.51.100.1")
        assert db.query(AffiliateClick).count() == 2

    def test_long_fields_truncated(self, db, factory):
        factory.affiliate()
        ClickService(db).track_click("DUBAI10", "203.0.113.7", user_agent="x" * 900, landing_page="/" + "p" * 2000)

        click = db.query(AffiliateClick).one()
        assert len(click.user_agent) == 500
        assert len(click.landing_page) == 1000

    @pytest.mark.parametrize("status", ["pending", "suspended"])
    def test_unapproved_affiliate_rejected(self, db, factory, status):
        factory.affiliate(status=status)
        with pytest.raises(HTTPException) as exc_info:
            ClickService(db).track_click("DUBAI10", "203.0.113.7")
        assert exc_info.value.status_code == 404

    def test_unknown_code_rejected(self, db):
        with pytest.raises(HTTPException) as exc_info:
            ClickService(db).track_click("NOPE", "203.0.113.7")
        assert exc_info.value.detail == "Invalid referral code"
