from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool

from rfq_sheet.api.deps import get_chat_model, get_text_extractor, get_upload_quota
from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event
from rfq_sheet.core.network import client_identity
from rfq_sheet.core.scratch import UploadTooLargeError, scratch_upload
from rfq_sheet.modules.extraction.ai import ChatModel, ExtractionUnavailableError
from rfq_sheet.modules.extraction.schemas import ExtractResponse
from rfq_sheet.modules.extraction.service import (
    EMPTY_RESULT_MESSAGE,
    ExtractionStatus,
    TextExtractor,
    extract_document,
    looks_like_pdf_bytes,
)
from rfq_sheet.modules.quota.service import UploadQuota, UploadQuotaExceededError

router = APIRouter(tags=["extraction"])
logger = get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def _reject(status_code: int, detail: str, *, reason: str) -> HTTPException:
    log_event(logger, "upload.rejected", reason=reason, status_code=status_code)
    return HTTPException(status_code=status_code, detail=detail)


@router.post("/extract", response_model=ExtractResponse)
async def extract_items(
    request: Request,
    pdf: UploadFile | None = File(None),
    chat_model: ChatModel = Depends(get_chat_model),
    text_extractor: TextExtractor = Depends(get_text_extractor),
    quota: UploadQuota = Depends(get_upload_quota),
) -> ExtractResponse:
    if pdf is None:
        raise _reject(status.HTTP_400_BAD_REQUEST, "No PDF uploaded", reason="missing_file")

    log_event(
        logger,
        "upload.received",
        filename=pdf.filename or "upload.pdf",
        content_type=pdf.content_type,
        byte_size=pdf.size,
    )
    if pdf.content_type != PDF_MEDIA_TYPE:
        raise _reject(
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            "Only PDF uploads are accepted",
            reason="media_type",
        )

    try:
        async with scratch_upload(pdf, max_bytes=settings.max_upload_bytes) as path:
            body = await run_in_threadpool(path.read_bytes)
            if not looks_like_pdf_bytes(body):
                raise _reject(
                    status.HTTP_400_BAD_REQUEST,
                    "Bad upload: file does not start with the %PDF header",
                    reason="bad_pdf_header",
                )

            client_id = client_identity(request)
            try:
                quota.consume(client_id)
            except UploadQuotaExceededError as e:
                hours = e.decision.window_seconds // 3600
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail={
                        "error": str(e),
                        "limit": e.decision.limit,
                        "window_hours": hours,
                        "retry_after_seconds": e.retry_after_seconds,
                    },
                    headers={"Retry-After": str(e.retry_after_seconds)},
                ) from e

            try:
                result = await run_in_threadpool(
                    extract_document,
                    body,
                    text_extractor=text_extractor,
                    chat_model=chat_model,
                )
            except ExtractionUnavailableError as e:
                # The client is not charged for a model outage.
                quota.refund(client_id)
                raise HTTPException(
                    status_code=status.HTTP_502_BAD_GATEWAY,
                    detail="Backend processing failed",
                ) from e
    except UploadTooLargeError as e:
        mib = settings.max_upload_bytes // (1024 * 1024)
        raise _reject(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"PDF exceeds the {mib} MB upload limit",
            reason="too_large",
        ) from e

    return ExtractResponse(
        status=result.status.value,
        items=result.items,
        message=EMPTY_RESULT_MESSAGE if result.status == ExtractionStatus.EMPTY else None,
    )
