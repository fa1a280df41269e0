"""Property sync service - pulls listings per area and upserts them"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ...config import SYNC_HITS_PER_PAGE
from ...utils.media_storage import MAX_PHOTOS_PER_PROPERTY, is_storage_configured, rehost_photo
from .bayut_client import BayutClient
from .repository import PropertyRepository
from .transform import EXTERNAL_SOURCE, extract_photo_urls, get_area, get_external_id, transform_source_record

logger = logging.getLogger(__name__)

RECENT_SYNC_WINDOW = timedelta(hours=24)


@dataclass
class SyncOptions:
    max_pages: int = 1
    purpose: str = "for-sale"
    include_rentals: bool = False
    lite_mode: bool = True
    skip_recently_synced: bool = True
    hits_per_page: int = SYNC_HITS_PER_PAGE

    def purposes(self) -> list[str]:
        purposes = [self.purpose]
        if self.include_rentals and "for-rent" not in purposes:
            purposes.append("for-rent")
        return purposes


@dataclass
class AreaSyncResult:
    area: str
    status: str = "running"
    properties_found: int = 0
    properties_synced: int = 0
    properties_skipped: int = 0
    photos_synced: int = 0
    api_calls_used: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "area": self.area,
            "status": self.status,
            "propertiesFound": self.properties_found,
            "propertiesSynced": self.properties_synced,
            "propertiesSkipped": self.properties_skipped,
            "photosSynced": self.photos_synced,
            "apiCallsUsed": self.api_calls_used,
            "errors": self.errors,
        }


class AreaSyncError(Exception):
    """An area stopped partway; result holds what was written before the failure"""

    def __init__(self, result: AreaSyncResult, cause: Exception):
        self.result = result
        super().__init__(str(cause))


class PropertySyncService:
    """Coordinates fetch -> transform -> upsert for one or many areas.

    Areas are processed one after another; a failing area is recorded and the
    remaining areas still run.
    """

    def __init__(self, db: Session, client: Optional[BayutClient] = None, r2_client=None):
        self.db = db
        self.repo = PropertyRepository()
        self.client = client or BayutClient()
        self.r2_client = r2_client

    def _recently_synced(self, external_id: str, now: datetime) -> bool:
        existing = self.repo.get_by_external_id(self.db, EXTERNAL_SOURCE, external_id)
        if existing is None or existing.last_synced_at is None:
            return False
        return now - existing.last_synced_at < RECENT_SYNC_WINDOW

    async def _rehost_photos(self, http_client: httpx.AsyncClient, record: dict, external_id: str) -> list[str]:
        rehosted = []
        for url in extract_photo_urls(record)[:MAX_PHOTOS_PER_PROPERTY]:
            stored_url = await rehost_photo(http_client, url, external_id, r2_client=self.r2_client)
            if stored_url:
                rehosted.append(stored_url)
        return rehosted

    async def _process_record(
        self,
        record: dict,
        options: SyncOptions,
        result: AreaSyncResult,
        http_client: Optional[httpx.AsyncClient],
    ) -> None:
        external_id = get_external_id(record)
        now = datetime.utcnow()

        if options.skip_recently_synced and self._recently_synced(external_id, now):
            logger.debug(f"⏭️ Skipping {external_id} - recently synced")
            result.properties_skipped += 1
            return

        data = transform_source_record(record, synced_at=now)
        if http_client is not None:
            data["images"] = await self._rehost_photos(http_client, record, external_id)
            result.photos_synced += len(data["images"])

        self.repo.upsert_property(self.db, data)
        result.properties_synced += 1

    async def sync_area(
        self,
        area_slug: str,
        options: Optional[SyncOptions] = None,
        sync_run_id: Optional[int] = None,
    ) -> AreaSyncResult:
        """Fetch up to options.max_pages pages per purpose for one area and upsert every record"""
        options = options or SyncOptions()
        area = get_area(area_slug)
        if area is None:
            raise ValueError(f"Unknown area: {area_slug}")

        logger.info(f"🏙️ [Bayut Sync] Syncing {area['name']} (pages={options.max_pages}, lite={options.lite_mode})")
        result = AreaSyncResult(area=area_slug)
        log = self.repo.create_area_log(self.db, area_slug, sync_run_id=sync_run_id)
        calls_before = self.client.api_calls

        rehost = not options.lite_mode and is_storage_configured()
        if not options.lite_mode and not rehost:
            logger.warning("⚠️ [Bayut Sync] R2 storage not configured, photos will not be re-hosted")
        http_client = httpx.AsyncClient(timeout=30.0) if rehost else None

        try:
            for purpose in options.purposes():
                for page in range(options.max_pages):
                    data = await self.client.list_properties(
                        area["location_id"], purpose=purpose, page=page, hits_per_page=options.hits_per_page
                    )
                    hits = data["hits"]
                    if not hits:
                        break
                    result.properties_found += len(hits)

                    for record in hits:
                        try:
                            await self._process_record(record, options, result, http_client)
                        except Exception as e:
                            self.db.rollback()
                            message = f"Property {record.get('externalID') or record.get('id')}: {e}"
                            logger.error(f"❌ [Bayut Sync] {message}")
                            result.errors.append(message)

                    if page + 1 >= data["nbPages"]:
                        break
        except Exception as e:
            self.db.rollback()
            result.errors.append(str(e))
            result.status = "failed"
            result.api_calls_used = self.client.api_calls - calls_before
            self._finish_log(log, result)
            logger.error(
                f"❌ [Bayut Sync] {area['name']} failed after {result.properties_synced} properties: {e}"
            )
            raise AreaSyncError(result, e) from e
        finally:
            if http_client is not None:
                await http_client.aclose()

        result.api_calls_used = self.client.api_calls - calls_before
        result.status = "completed_with_errors" if result.errors else "completed"
        self._finish_log(log, result)
        logger.info(
            f"✅ [Bayut Sync] {area['name']}: {result.properties_synced}/{result.properties_found} synced, "
            f"{result.properties_skipped} skipped, {result.api_calls_used} API calls"
        )
        return result

    def _finish_log(self, log, result: AreaSyncResult) -> None:
        self.repo.finish_area_log(
            self.db,
            log,
            status=result.status,
            properties_found=result.properties_found,
            properties_synced=result.properties_synced,
            properties_skipped=result.properties_skipped,
            photos_synced=result.photos_synced,
            api_calls_used=result.api_calls_used,
            errors=result.errors,
        )

    async def run_bulk_sync(
        self,
        area_slugs: list[str],
        options: Optional[SyncOptions] = None,
        triggered_by: str = "manual",
        schedule_name: Optional[str] = None,
    ) -> dict:
        """Sync several areas under one SyncRun row"""
        options = options or SyncOptions()
        start = time.monotonic()
        run = self.repo.create_sync_run(self.db, triggered_by, len(area_slugs), schedule_name=schedule_name)
        logger.info(f"🔄 [Bayut Sync] Run {run.id} started by {triggered_by}: {len(area_slugs)} areas")

        area_results: list[AreaSyncResult] = []
        failed_results: list[AreaSyncResult] = []
        area_errors: list[str] = []
        try:
            for slug in area_slugs:
                try:
                    area_results.append(await self.sync_area(slug, options, sync_run_id=run.id))
                except AreaSyncError as e:
                    failed_results.append(e.result)
                    area_errors.append(f"{slug}: {e}")
                except Exception as e:
                    area_errors.append(f"{slug}: {e}")

            synced = sum(r.properties_synced for r in area_results + failed_results)
            if area_errors:
                status = "completed_with_errors" if synced > 0 else "failed"
            else:
                status = "completed"
            duration = int(time.monotonic() - start)

            self.repo.finish_sync_run(
                self.db,
                run,
                status=status,
                properties_synced=synced,
                areas_processed=len(area_results),
                duration_seconds=duration,
                error_message="; ".join(area_errors)[:2000] if area_errors else None,
                details={"areas": [r.to_dict() for r in area_results + failed_results], "errors": area_errors},
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ [Bayut Sync] Run {run.id} aborted: {e}")
            self.repo.finish_sync_run(
                self.db,
                run,
                status="failed",
                error_message=str(e),
                duration_seconds=int(time.monotonic() - start),
            )
            raise

        logger.info(f"🏁 [Bayut Sync] Run {run.id} {status}: {synced} properties in {duration}s")

        return {
            "success": status != "failed",
            "status": status,
            "syncRunId": run.id,
            "propertiesSynced": synced,
            "areasProcessed": len(area_results),
            "areasTotal": len(area_slugs),
            "durationSeconds": duration,
            "areas": [r.to_dict() for r in area_results + failed_results],
            "errors": area_errors,
        }
