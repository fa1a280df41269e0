from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Property(Base):
    """Listing imported from an external source; reviewed before publication"""

    __tablename__ = "properties"
    __table_args__ = (
        UniqueConstraint("external_source", "external_id", name="uq_properties_external"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # (external_source, external_id) is the upsert identity
    external_id = Column(String(64), nullable=False, index=True)
    external_source = Column(String(32), nullable=False, default="bayut")
    external_url = Column(String(500), nullable=True)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    slug = Column(String(255), nullable=False, index=True)

    # Pricing
    price_aed = Column(Float, default=0)
    listing_type = Column(String(10), default="sale")  # sale, rent

    # Physical attributes
    size_sqft = Column(Integer, default=0)
    bedrooms = Column(Integer, default=0)
    bathrooms = Column(Integer, default=0)
    property_type = Column(String(32), default="apartment")
    furnishing = Column(String(50), nullable=True)
    is_off_plan = Column(Boolean, default=False)
    rera_permit_number = Column(String(100), nullable=True)
    amenities = Column(JSON, default=list)
    images = Column(JSON, default=list)

    # Location
    location_area = Column(String(255), default="Dubai", index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    is_published = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class SyncSchedule(Base):
    """Configuration row for a periodic sync plus pointers to its last run"""

    __tablename__ = "sync_schedules"

    id = Column(Integer, primary_key=True, index=True)
    schedule_name = Column(String(100), unique=True, nullable=False, index=True)
    cron_expression = Column(String(100), default="0 23 * * *", nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    # pages_per_area, lite_mode, include_rentals, skip_recently_synced
    config = Column(JSON, default=dict)

    last_run_at = Column(DateTime, nullable=True)
    last_run_status = Column(String(50), nullable=True)
    last_run_properties_synced = Column(Integer, default=0)
    last_run_duration_seconds = Column(Integer, nullable=True)
    next_run_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class SyncRun(Base):
    """One row per sync invocation"""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    schedule_name = Column(String(100), nullable=True, index=True)
    triggered_by = Column(String(50), default="manual")
    status = Column(String(50), default="running")  # running, completed, completed_with_errors, failed

    properties_synced = Column(Integer, default=0)
    areas_processed = Column(Integer, default=0)
    areas_total = Column(Integer, default=0)
    duration_seconds = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    area_logs = relationship("AreaSyncLog", back_populates="sync_run")


class AreaSyncLog(Base):
    """Per-area fetch statistics for a sync run"""

    __tablename__ = "area_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    sync_run_id = Column(Integer, ForeignKey("sync_runs.id"), nullable=True, index=True)
    area_name = Column(String(100), nullable=False)
    status = Column(String(50), default="running")

    properties_found = Column(Integer, default=0)
    properties_synced = Column(Integer, default=0)
    properties_skipped = Column(Integer, default=0)
    photos_synced = Column(Integer, default=0)
    api_calls_used = Column(Integer, default=0)
    errors = Column(JSON, default=list)

    started_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime, nullable=True)

    sync_run = relationship("SyncRun", back_populates="area_logs")


class SyncAlert(Base):
    """Admin-facing alert raised at the end of a scheduled sync"""

    __tablename__ = "sync_alerts"

    id = Column(Integer, primary_key=True, index=True)
    alert_type = Column(String(50), nullable=False)  # sync_success, sync_partial, sync_failure
    severity = Column(String(20), default="info")  # info, warning, error
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    is_acknowledged = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
