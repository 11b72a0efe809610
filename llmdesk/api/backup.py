"""Backup import/export API endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request

from llmdesk.api.deps import get_export_service, get_import_service
from llmdesk.schemas.catalog import CatalogDocument
from llmdesk.schemas.results import ImportMode, ImportResult
from llmdesk.services.export_service import ExportService
from llmdesk.services.file_source import BytesFileSource
from llmdesk.services.import_service import ImportService

router = APIRouter(prefix="/api/backup", tags=["backup"])


@router.get("/export", response_model=CatalogDocument)
async def export_data(service: ExportService = Depends(get_export_service)):
    """Export all providers as a versioned backup document."""
    try:
        return service.export_document()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to export data: {str(e)}")


@router.post("/import", response_model=ImportResult)
async def import_data(
    request: Request,
    mode: ImportMode,
    x_backup_passphrase: Optional[str] = Header(default=None),
    service: ImportService = Depends(get_import_service)
):
    """Import a backup document sent as the raw request body.

    An empty body means the user cancelled file selection; the result then
    carries the "Import cancelled" message and should not be shown as an error.
    """
    body = await request.body()
    return await service.import_from_source(BytesFileSource(body), mode, x_backup_passphrase)
