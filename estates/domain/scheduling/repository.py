"""Schedule repository - sync_schedules and sync_alerts rows"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import SyncAlert, SyncSchedule


class ScheduleRepository:
    """Repository for sync schedule database operations"""

    @staticmethod
    def get_schedule(db: Session, schedule_name: str) -> Optional[SyncSchedule]:
        return db.query(SyncSchedule).filter(SyncSchedule.schedule_name == schedule_name).first()

    @staticmethod
    def mark_running(db: Session, schedule: SyncSchedule, started_at: datetime) -> None:
        schedule.last_run_at = started_at
        schedule.last_run_status = "running"
        db.commit()

    @staticmethod
    def record_outcome(
        db: Session,
        schedule: SyncSchedule,
        status: str,
        properties_synced: int,
        duration_seconds: int,
        next_run_at: Optional[datetime] = None,
    ) -> None:
        schedule.last_run_status = status
        schedule.last_run_properties_synced = properties_synced
        schedule.last_run_duration_seconds = duration_seconds
        if next_run_at is not None:
            schedule.next_run_at = next_run_at
        db.commit()

    @staticmethod
    def create_alert(db: Session, alert_type: str, severity: str, title: str, message: str) -> SyncAlert:
        alert = SyncAlert(
            alert_type=alert_type,
            severity=severity,
            title=title,
            message=message,
            is_acknowledged=False,
        )
        db.add(alert)
        db.commit()
        db.refresh(alert)
        return alert
