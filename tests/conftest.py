import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from estates import models, models_affiliate  # noqa: E402,F401
from estates.cache import Cache  # noqa: E402
from estates.database import Base  # noqa: E402
from estates.models import SyncSchedule  # noqa: E402
from estates.models_affiliate import Affiliate, Commission, Referral, User  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def cache_backend(fake_redis):
    return Cache(redis_client=fake_redis)


def listing(external_id, title="Marina View Tower", purpose="for-sale", **overrides):
    """Raw listing record shaped like the Bayut API response"""
    record = {
        "externalID": str(external_id),
        "title": title,
        "purpose": purpose,
        "price": 1_250_000,
        "area": 1024.6,
        "rooms": "2",
        "baths": 2,
        "category": [{"slug": "apartments"}],
        "location": [
            {"level": 0, "name": "UAE"},
            {"level": 1, "name": "Dubai Marina"},
        ],
        "geography": {"lat": 25.08, "lng": 55.14},
        "completionStatus": "completed",
        "furnishingStatus": "furnished",
        "permitNumber": "71234567",
        "amenities": ["Pool", "Gym"],
        "coverPhoto": {"url": f"https://images.bayut.com/{external_id}/cover.jpg"},
        "photos": [],
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_listing():
    return listing


class Factory:
    """Creates affiliate program rows with sensible defaults"""

    def __init__(self, db):
        self.db = db
        self.sequence = 0

    def user(self, email="referred@example.com", full_name="Referred User"):
        user = User(email=email, full_name=full_name)
        self.db.add(user)
        self.db.commit()
        return user

    def affiliate(self, code="DUBAI10", status="approved", commission_rate=None, connect_id=None, email=None):
        owner = self.user(email=email or f"{code.lower()}@affiliates.example.com", full_name="Affiliate Owner")
        affiliate = Affiliate(
            user_id=owner.id,
            referral_code=code,
            status=status,
            commission_rate=commission_rate,
            stripe_connect_id=connect_id,
            pending_earnings=0,
            total_earnings=0,
        )
        self.db.add(affiliate)
        self.db.commit()
        return affiliate

    def referral(self, affiliate, user=None, status="pending", days_ago=1):
        self.sequence += 1
        user = user or self.user(email=f"user{self.sequence}@example.com")
        referral = Referral(
            affiliate_id=affiliate.id,
            referred_user_id=user.id,
            status=status,
            qualification_date=datetime.utcnow() - timedelta(days=days_ago),
        )
        self.db.add(referral)
        self.db.commit()
        return referral

    def commission(self, affiliate, amount, status="approved", referral=None):
        referral = referral or self.referral(affiliate, status="qualified")
        commission = Commission(
            affiliate_id=affiliate.id,
            referral_id=referral.id,
            product_type="dubai_investor",
            billing_period="monthly",
            gross_amount=amount * 2,
            commission_rate=0.5,
            commission_amount=amount,
            currency="USD",
            status=status,
            approved_at=datetime.utcnow(),
        )
        self.db.add(commission)
        affiliate.pending_earnings = (affiliate.pending_earnings or 0) + amount
        self.db.commit()
        return commission

    def schedule(self, is_enabled=True, config=None, cron_expression="0 23 * * *", name="bayut_daily_sync"):
        schedule = SyncSchedule(
            schedule_name=name,
            cron_expression=cron_expression,
            is_enabled=is_enabled,
            config=config if config is not None else {},
        )
        self.db.add(schedule)
        self.db.commit()
        return schedule


@pytest.fixture
def factory(db):
    return Factory(db)
