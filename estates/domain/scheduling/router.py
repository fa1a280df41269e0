"""Scheduling router - scheduled sync trigger and next-run preview"""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from .schedule import next_run_time
from .schemas import NextRunResponse, ScheduledSyncRequest
from .service import ScheduledSyncService, ScheduleNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync Schedule"])


def get_scheduled_sync_service(db: Session = Depends(get_db)) -> ScheduledSyncService:
    """Dependency injection for ScheduledSyncService"""
    return ScheduledSyncService(db)


@router.post("/scheduled")
async def run_scheduled_sync(
    body: Optional[ScheduledSyncRequest] = Body(default=None),
    service: ScheduledSyncService = Depends(get_scheduled_sync_service),
):
    """Run the daily sync now (cron trigger or manual)"""
    body = body or ScheduledSyncRequest()
    try:
        result = await service.run(triggered_by=body.triggered_by, chunk_index=body.chunk_index)
    except ScheduleNotFoundError as e:
        logger.error(f"❌ [Scheduled Sync] {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    except ValueError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": str(e)})

    if result.get("error"):
        return JSONResponse(status_code=500, content=result)
    return result


@router.get("/schedule/next-run", response_model=NextRunResponse)
async def get_next_run(cron: str = Query("0 23 * * *")):
    """Preview the next UTC run time for a cron expression"""
    return NextRunResponse(cron=cron, next_run_at=next_run_time(cron))
