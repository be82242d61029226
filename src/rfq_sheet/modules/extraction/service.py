from __future__ import annotations

import enum
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

from pypdf import PdfReader

from rfq_sheet.core.logging import get_logger, log_event, log_exception, monotonic_ms
from rfq_sheet.modules.extraction.ai import ChatModel
from rfq_sheet.modules.extraction.prompts import PromptTemplates, build_prompt_pair
from rfq_sheet.modules.extraction.recovery import recover_items
from rfq_sheet.modules.extraction.schemas import LINE_ITEM_TEXT_FIELDS, LineItem, as_raw_text

logger = get_logger(__name__)

TextExtractor = Callable[[bytes], str]

EMPTY_RESULT_MESSAGE = (
    "This PDF appears to be scanned or image-based. "
    "Please upload a text-based RFQ or PR PDF."
)


class ExtractionStatus(str, enum.Enum):
    ITEMS_FOUND = "items_found"
    EMPTY = "empty"


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    items: list[LineItem] = field(default_factory=list)

    @classmethod
    def from_items(cls, items: list[LineItem]) -> ExtractionResult:
        status = ExtractionStatus.ITEMS_FOUND if items else ExtractionStatus.EMPTY
        return cls(status=status, items=items)


def extract_document(
    body: bytes, *, text_extractor: TextExtractor, chat_model: ChatModel
) -> ExtractionResult:
    start = time.monotonic()
    log_event(logger, "extraction.start", byte_size=len(body))
    text = text_extractor(body)
    result = extract_line_items(text, chat_model=chat_model)
    log_event(
        logger,
        "extraction.finish",
        status=result.status.value,
        item_count=len(result.items),
        text_chars=len(text),
        duration_ms=monotonic_ms(start),
    )
    return result


def extract_line_items(
    text: str, *, chat_model: ChatModel, templates: PromptTemplates | None = None
) -> ExtractionResult:
    """
    Run document text through prompt assembly, the model call, recovery and normalization.

    `ExtractionUnavailableError` from the model call propagates; everything after it
    degrades to an empty result.
    """
    if not (text or "").strip():
        log_event(logger, "extraction.text_empty")
        return ExtractionResult(status=ExtractionStatus.EMPTY)

    prompt = build_prompt_pair(text, templates=templates)
    content = chat_model.complete(prompt)
    return ExtractionResult.from_items(normalize_items(recover_items(content)))


def normalize_items(records: Sequence[Any]) -> list[LineItem]:
    items: list[LineItem] = []
    for record in records:
        fields = record if isinstance(record, Mapping) else {}
        items.append(
            LineItem(
                **{name: as_raw_text(fields.get(name)) for name in LINE_ITEM_TEXT_FIELDS},
                include=True,
            )
        )
    return items


def extract_pdf_text(body: bytes) -> str:
    """Text layer of every page, newline-joined. Unreadable PDFs yield ""."""
    try:
        reader = PdfReader(BytesIO(body))
        pages = [
            (page.extract_text() or "").replace("\u202f", " ").replace("\xa0", " ")
            for page in reader.pages
        ]
    except Exception:  # noqa: BLE001
        log_exception(logger, "extraction.pdf.unreadable", byte_size=len(body))
        return ""
    return "\n".join(pages)


def looks_like_pdf_bytes(body: bytes) -> bool:
    if not body:
        return False
    b = body[:1024].lstrip()
    if b.startswith(b"\xef\xbb\xbf"):
        b = b[3:].lstrip()
    return b.startswith(b"%PDF")
