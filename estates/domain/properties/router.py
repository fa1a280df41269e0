"""Property sync router - manual Bayut sync actions"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...database import get_db
from .bayut_client import BayutAPIError, BayutClient
from .schemas import BayutSyncRequest
from .sync_service import AreaSyncError, PropertySyncService, SyncOptions
from .transform import DUBAI_AREAS, list_areas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Property Sync"])


def get_bayut_client() -> BayutClient:
    """Dependency injection for BayutClient"""
    return BayutClient()


def get_property_sync_service(
    db: Session = Depends(get_db),
    client: BayutClient = Depends(get_bayut_client),
) -> PropertySyncService:
    """Dependency injection for PropertySyncService"""
    return PropertySyncService(db, client=client)


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@router.post("/bayut")
async def bayut_sync(
    body: BayutSyncRequest,
    client: BayutClient = Depends(get_bayut_client),
    service: PropertySyncService = Depends(get_property_sync_service),
):
    """Run one Bayut sync action: test | get_areas | sync_area | bulk_sync"""
    logger.info(f"📥 [Bayut Sync] action={body.action} area={body.area} purpose={body.purpose}")

    if body.action == "get_areas":
        return {"success": True, "areas": list_areas()}

    if not client.is_configured:
        return error_response(
            500,
            "RAPIDAPI_KEY not configured",
            message="Add the RapidAPI key to the environment",
        )

    if body.action == "test":
        result = await client.test_connection()
        return result if result["success"] else JSONResponse(status_code=400, content=result)

    options = SyncOptions(
        max_pages=body.max_pages,
        purpose=body.purpose,
        include_rentals=body.include_rentals,
        lite_mode=body.lite_mode,
        skip_recently_synced=body.skip_recently_synced,
    )

    if body.action == "sync_area":
        if not body.area:
            return error_response(400, "Area is required for sync_area action")
        if body.area not in DUBAI_AREAS:
            return error_response(400, f"Unknown area: {body.area}", availableAreas=list(DUBAI_AREAS))
        try:
            result = await service.sync_area(body.area, options)
        except AreaSyncError as e:
            extra = {"diagnosis": e.__cause__.to_diagnosis()} if isinstance(e.__cause__, BayutAPIError) else {}
            return error_response(500, "Sync failed", details=str(e), **e.result.to_dict(), **extra)
        return {
            "success": True,
            "message": f"Synced {result.properties_synced} of {result.properties_found} properties from {body.area}",
            **result.to_dict(),
        }

    areas = body.areas or list(DUBAI_AREAS)
    unknown = [a for a in areas if a not in DUBAI_AREAS]
    if unknown:
        return error_response(400, f"Unknown areas: {', '.join(unknown)}", availableAreas=list(DUBAI_AREAS))

    summary = await service.run_bulk_sync(areas, options, triggered_by="manual")
    if not summary["success"]:
        return JSONResponse(status_code=500, content={**summary, "error": "Bulk sync failed for every area"})
    return summary
