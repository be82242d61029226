from __future__ import annotations

from fastapi import APIRouter

from rfq_sheet.modules.exports.api import export_items
from rfq_sheet.modules.exports.api import router as exports_router
from rfq_sheet.modules.extraction.api import extract_items
from rfq_sheet.modules.extraction.api import router as extraction_router
from rfq_sheet.modules.extraction.schemas import ExtractResponse

router = APIRouter()

router.include_router(extraction_router, prefix="/api")
router.include_router(exports_router, prefix="/api")

# Paths used by the single-page client.
router.add_api_route(
    "/upload",
    extract_items,
    methods=["POST"],
    response_model=ExtractResponse,
    include_in_schema=False,
)
router.add_api_route("/download", export_items, methods=["POST"], include_in_schema=False)


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}
