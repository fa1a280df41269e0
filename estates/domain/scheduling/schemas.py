"""Scheduling schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ScheduledSyncRequest(BaseModel):
    triggered_by: str = "manual"
    chunk_index: Optional[int] = Field(default=None, ge=0)


class NextRunResponse(BaseModel):
    cron: str
    next_run_at: datetime
