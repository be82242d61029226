from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event
from rfq_sheet.modules.exports.schemas import ExportRequest
from rfq_sheet.modules.exports.service import (
    XLSX_MEDIA_TYPE,
    ExportFailedError,
    build_materials_xlsx,
)

router = APIRouter(tags=["exports"])
logger = get_logger(__name__)


@router.post("/export")
async def export_items(payload: ExportRequest) -> Response:
    log_event(logger, "export.requested", item_count=len(payload.items))
    try:
        body = await run_in_threadpool(build_materials_xlsx, payload.items)
    except ExportFailedError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Excel export failed"
        ) from e
    return Response(
        content=body,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{settings.export_filename}"'},
    )
