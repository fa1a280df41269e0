"""Property repository - Database operations for listings and sync bookkeeping"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import AreaSyncLog, Property, SyncRun

# Columns owned by the review workflow; never overwritten by a sync
PRESERVED_ON_UPDATE = {"is_published"}


class PropertyRepository:
    """Repository for listing and sync run database operations"""

    @staticmethod
    def get_by_external_id(db: Session, external_source: str, external_id: str) -> Optional[Property]:
        return (
            db.query(Property)
            .filter(Property.external_source == external_source, Property.external_id == external_id)
            .first()
        )

    @staticmethod
    def upsert_property(db: Session, data: dict[str, Any]) -> tuple[Property, bool]:
        """Insert or update by (external_source, external_id)

        Returns:
            (property, created)
        """
        existing = PropertyRepository.get_by_external_id(db, data["external_source"], data["external_id"])
        if existing is None:
            prop = Property(**data)
            db.add(prop)
            db.commit()
            db.refresh(prop)
            return prop, True

        for key, value in data.items():
            if key in PRESERVED_ON_UPDATE:
                continue
            # Keep previously re-hosted photos when this pass did not re-host any
            if key == "images" and not value and existing.images:
                continue
            setattr(existing, key, value)
        db.commit()
        db.refresh(existing)
        return existing, False

    @staticmethod
    def count_properties(db: Session, external_source: Optional[str] = None) -> int:
        query = db.query(Property)
        if external_source:
            query = query.filter(Property.external_source == external_source)
        return query.count()

    # ------------------------------------------------------------------
    # Sync runs

    @staticmethod
    def create_sync_run(
        db: Session,
        triggered_by: str,
        areas_total: int,
        schedule_name: Optional[str] = None,
    ) -> SyncRun:
        run = SyncRun(
            schedule_name=schedule_name,
            triggered_by=triggered_by,
            status="running",
            areas_total=areas_total,
            started_at=datetime.utcnow(),
        )
        db.add(run)
        db.commit()
        db.refresh(run)
        return run

    @staticmethod
    def finish_sync_run(db: Session, run: SyncRun, **updates) -> SyncRun:
        for key, value in updates.items():
            setattr(run, key, value)
        run.completed_at = datetime.utcnow()
        db.commit()
        db.refresh(run)
        return run

    @staticmethod
    def create_area_log(db: Session, area_name: str, sync_run_id: Optional[int] = None) -> AreaSyncLog:
        log = AreaSyncLog(
            sync_run_id=sync_run_id,
            area_name=area_name,
            status="running",
            started_at=datetime.utcnow(),
        )
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def finish_area_log(db: Session, log: AreaSyncLog, **updates) -> AreaSyncLog:
        for key, value in updates.items():
            setattr(log, key, value)
        log.completed_at = datetime.utcnow()
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def get_area_logs(db: Session, sync_run_id: int) -> list[AreaSyncLog]:
        return (
            db.query(AreaSyncLog)
            .filter(AreaSyncLog.sync_run_id == sync_run_id)
            .order_by(AreaSyncLog.id)
            .all()
        )
