"""Scheduled sync service - runs the daily Bayut sync in area chunks"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from ...config import ADMIN_ALERT_EMAIL, SYNC_CHUNK_DELAY_SECONDS, SYNC_SCHEDULE_NAME
from ...email_service import send_sync_failure_alert
from ..properties.sync_service import PropertySyncService, SyncOptions
from .repository import ScheduleRepository
from .schedule import SYNC_AREA_CHUNKS, ScheduleConfig, next_run_time

logger = logging.getLogger(__name__)


class ScheduleNotFoundError(Exception):
    pass


class ScheduledSyncService:
    """Runs every area chunk (or a single one) with the stored schedule config"""

    def __init__(
        self,
        db: Session,
        sync_service: Optional[PropertySyncService] = None,
        schedule_name: str = SYNC_SCHEDULE_NAME,
        chunks: Optional[list[list[str]]] = None,
        chunk_delay: float = SYNC_CHUNK_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.db = db
        self.repo = ScheduleRepository()
        self.sync_service = sync_service or PropertySyncService(db)
        self.schedule_name = schedule_name
        self.chunks = chunks if chunks is not None else SYNC_AREA_CHUNKS
        self.chunk_delay = chunk_delay
        self.sleep = sleep

    async def run(self, triggered_by: str = "manual", chunk_index: Optional[int] = None) -> dict:
        """
        Run the scheduled sync

        Args:
            triggered_by: "manual", "cron", ...; a disabled schedule only runs when manual
            chunk_index: Run a single area chunk instead of all of them

        Returns:
            Summary dict; contains "error" when the run failed outright
        """
        logger.info(f"🕐 [Scheduled Sync] Starting sync triggered by: {triggered_by}")
        schedule = self.repo.get_schedule(self.db, self.schedule_name)
        if schedule is None:
            raise ScheduleNotFoundError(f"Schedule '{self.schedule_name}' not found")
        config = ScheduleConfig.from_row(schedule)

        if not config.is_enabled and triggered_by != "manual":
            logger.info("⏸️ [Scheduled Sync] Schedule is disabled, skipping sync")
            return {"success": False, "message": "Schedule is disabled", "skipped": True}

        if chunk_index is not None and not 0 <= chunk_index < len(self.chunks):
            raise ValueError(f"chunk_index must be between 0 and {len(self.chunks) - 1}")

        logger.info(
            f"⚙️ [Scheduled Sync] Config: {config.pages_per_area} pages/area, lite={config.lite_mode}, "
            f"rentals={config.include_rentals}, skipRecent={config.skip_recently_synced}"
        )

        start = time.monotonic()
        self.repo.mark_running(self.db, schedule, datetime.utcnow())

        if chunk_index is not None:
            selected = [(chunk_index, self.chunks[chunk_index])]
        else:
            selected = list(enumerate(self.chunks))
        options = SyncOptions(
            max_pages=config.pages_per_area,
            include_rentals=config.include_rentals,
            lite_mode=config.lite_mode,
            skip_recently_synced=config.skip_recently_synced,
        )

        total_synced = 0
        chunks_processed = 0
        chunk_results: list[dict] = []

        try:
            for position, (index, areas) in enumerate(selected):
                logger.info(f"📦 [Scheduled Sync] Processing chunk {index + 1}/{len(self.chunks)}: {', '.join(areas)}")
                try:
                    summary = await self.sync_service.run_bulk_sync(
                        areas, options, triggered_by=triggered_by, schedule_name=config.schedule_name
                    )
                    total_synced += summary["propertiesSynced"]
                    if summary["status"] == "failed":
                        chunk_results.append(
                            {"chunk": index + 1, "synced": 0, "error": "; ".join(summary["errors"]) or "failed"}
                        )
                    else:
                        chunks_processed += 1
                        chunk_results.append({"chunk": index + 1, "synced": summary["propertiesSynced"]})
                    logger.info(f"✅ [Scheduled Sync] Chunk {index + 1} {summary['status']}: {summary['propertiesSynced']} properties")
                except Exception as e:
                    logger.error(f"❌ [Scheduled Sync] Chunk {index + 1} failed: {e}")
                    chunk_results.append({"chunk": index + 1, "synced": 0, "error": str(e)})

                if position < len(selected) - 1 and self.chunk_delay > 0:
                    await self.sleep(self.chunk_delay)

            duration = int(time.monotonic() - start)
            has_errors = any("error" in r for r in chunk_results)
            if has_errors:
                status = "completed_with_errors" if total_synced > 0 else "failed"
            else:
                status = "completed"

            logger.info(
                f"🏁 [Scheduled Sync] Completed: {total_synced} properties in {duration}s "
                f"({chunks_processed}/{len(selected)} chunks)"
            )
            self.repo.record_outcome(
                self.db,
                schedule,
                status,
                total_synced,
                duration,
                next_run_at=next_run_time(config.cron_expression),
            )
            await self._raise_alert(config, status, total_synced, duration, chunks_processed, len(selected), chunk_results)

            return {
                "success": total_synced > 0 or not has_errors,
                "message": f"Scheduled sync {status}",
                "status": status,
                "totalPropertiesSynced": total_synced,
                "durationSeconds": duration,
                "triggeredBy": triggered_by,
                "chunksProcessed": chunks_processed,
                "totalChunks": len(selected),
                "chunkResults": chunk_results,
            }
        except Exception as e:
            self.db.rollback()
            duration = int(time.monotonic() - start)
            logger.error(f"❌ [Scheduled Sync] Error: {e}")
            self.repo.record_outcome(self.db, schedule, "failed", total_synced, duration)
            self.repo.create_alert(
                self.db,
                "sync_failure",
                "error",
                "Scheduled Sync Failed",
                f"Daily Bayut sync failed: {e}",
            )
            await self._email_admin(config.schedule_name, "failed", total_synced, len(selected), [str(e)])
            return {
                "success": False,
                "error": str(e),
                "totalPropertiesSynced": total_synced,
                "chunkResults": chunk_results,
            }

    async def _raise_alert(
        self,
        config: ScheduleConfig,
        status: str,
        total_synced: int,
        duration: int,
        chunks_processed: int,
        chunks_total: int,
        chunk_results: list[dict],
    ) -> None:
        errors = [f"Chunk {r['chunk']}: {r['error']}" for r in chunk_results if "error" in r]

        if total_synced > 0:
            partial = bool(errors)
            self.repo.create_alert(
                self.db,
                "sync_partial" if partial else "sync_success",
                "warning" if partial else "info",
                "Scheduled Sync Completed with Errors" if partial else "Scheduled Sync Completed",
                f"Daily Bayut sync: {total_synced} properties synced in {duration}s. "
                f"Chunks: {chunks_processed}/{chunks_total}",
            )
        elif errors:
            self.repo.create_alert(
                self.db,
                "sync_failure",
                "error",
                "Scheduled Sync Failed",
                "All sync chunks failed. Check API key and connection.",
            )

        if errors:
            await self._email_admin(config.schedule_name, status, total_synced, len(errors), errors)

    async def _email_admin(
        self,
        schedule_name: str,
        status: str,
        total_synced: int,
        chunks_failed: int,
        errors: list[str],
    ) -> None:
        if not ADMIN_ALERT_EMAIL:
            return
        try:
            await send_sync_failure_alert(ADMIN_ALERT_EMAIL, schedule_name, status, total_synced, chunks_failed, errors)
        except Exception as e:
            logger.error(f"❌ [Scheduled Sync] Failed to email sync alert: {e}")
