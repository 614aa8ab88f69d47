"""API endpoints for CAPA (corrective and preventive action) records."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response

from capa_tracker.core.capa_errors import NotFoundError, ValidationError
from capa_tracker.core.capa_export import EXPORT_FILENAME, build_capa_workbook
from capa_tracker.core.capa_lifecycle import CapaLifecycleManager
from capa_tracker.core.config import get_settings
from capa_tracker.core.logging import get_logger
from capa_tracker.core.permissions import require_manage_capa, require_user
from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.core.schemas_capa import (
    CapaContentUpdate,
    CapaCreate,
    CapaDueNotice,
    CapaListResponse,
    CapaRecord,
    CapaStatus,
    CapaStatusChange,
)
from capa_tracker.db.capas import SupabaseCapaStore

logger = get_logger(__name__)

router = APIRouter(prefix="/capas", tags=["capas"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_lifecycle_manager() -> CapaLifecycleManager:
    """Lifecycle manager bound to the Supabase store."""
    settings = get_settings()
    return CapaLifecycleManager(SupabaseCapaStore(), folio_prefix=settings.CAPA_FOLIO_PREFIX)


# ============================================================================
# Reads
# ============================================================================


@router.get("", response_model=CapaListResponse)
async def list_capas(
    status: CapaStatus | None = Query(None, description="Filter by status"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_user),
) -> CapaListResponse:
    """List all CAPA records with counts by status."""
    try:
        capas = await manager.list_all()
    except Exception as e:
        logger.error(f"Error listing CAPAs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    by_status = {s.value: 0 for s in CapaStatus}
    for capa in capas:
        by_status[capa.status.value] += 1

    if status:
        capas = [c for c in capas if c.status == status]

    return CapaListResponse(capas=capas, total=len(capas), by_status=by_status)


@router.get("/search", response_model=list[CapaRecord])
async def search_capas(
    q: str = Query(..., min_length=1, description="Folio or description fragment"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_user),
) -> list[CapaRecord]:
    """Search CAPA records by folio or description."""
    try:
        return await manager.search(q)
    except Exception as e:
        logger.error(f"Error searching CAPAs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/due-soon", response_model=list[CapaDueNotice])
async def list_due_soon(
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_user),
) -> list[CapaDueNotice]:
    """Notices for the caller's open CAPAs approaching their commitment date."""
    try:
        return await manager.due_soon_notices(
            user.id, within_days=get_settings().CAPA_DUE_SOON_DAYS
        )
    except Exception as e:
        logger.error(f"Error computing CAPA notices: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/export")
async def export_capas(
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_user),
) -> Response:
    """Download all CAPA records as an .xlsx report."""
    try:
        capas = await manager.list_all()
        users = await manager.store.list_users()
        content = build_capa_workbook(capas, users)
    except Exception as e:
        logger.error(f"Error exporting CAPAs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/{capa_id}", response_model=CapaRecord)
async def get_capa(
    capa_id: UUID = Path(..., description="CAPA UUID"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_user),
) -> CapaRecord:
    """Get a single CAPA record."""
    try:
        return await manager.get(capa_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error getting CAPA: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


# ============================================================================
# Mutations
# ============================================================================


@router.post("", response_model=CapaRecord, status_code=201)
async def create_capa(
    body: CapaCreate,
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_manage_capa),
) -> CapaRecord:
    """Create a new CAPA record in status open."""
    try:
        return await manager.create(body)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error creating CAPA: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.patch("/{capa_id}", response_model=CapaRecord)
async def update_capa(
    body: CapaContentUpdate,
    capa_id: UUID = Path(..., description="CAPA UUID"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_manage_capa),
) -> CapaRecord:
    """Edit the content fields of a CAPA record."""
    try:
        return await manager.update_content(capa_id, body)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error updating CAPA: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("/{capa_id}/status", response_model=CapaRecord)
async def change_capa_status(
    body: CapaStatusChange,
    capa_id: UUID = Path(..., description="CAPA UUID"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_manage_capa),
) -> CapaRecord:
    """Move a CAPA record to another status."""
    try:
        return await manager.transition_status(
            capa_id, body.status, verification_notes=body.verification_notes
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error changing CAPA status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.delete("/{capa_id}", status_code=204)
async def delete_capa(
    capa_id: UUID = Path(..., description="CAPA UUID"),
    manager: CapaLifecycleManager = Depends(get_lifecycle_manager),
    user: UserProfile = Depends(require_manage_capa),
) -> Response:
    """Permanently delete a CAPA record."""
    try:
        await manager.delete(capa_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error deleting CAPA: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return Response(status_code=204)
