"""Property sync schemas - Pydantic models for request validation"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class BayutSyncRequest(BaseModel):
    """Body of POST /sync/bayut"""

    action: Literal["test", "get_areas", "sync_area", "bulk_sync"]
    area: Optional[str] = None
    areas: Optional[list[str]] = None
    purpose: Literal["for-sale", "for-rent"] = "for-sale"
    max_pages: int = Field(default=1, ge=1, le=10)
    lite_mode: bool = True
    include_rentals: bool = False
    skip_recently_synced: bool = True

    @field_validator("area")
    @classmethod
    def normalize_area(cls, v):
        if v:
            return v.strip().lower()
        return v

    @field_validator("areas")
    @classmethod
    def normalize_areas(cls, v):
        if v:
            return [a.strip().lower() for a in v if a and a.strip()]
        return v
