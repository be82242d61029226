from __future__ import annotations

from rfq_sheet.modules.extraction.ai import ChatModel, OpenAIChatModel
from rfq_sheet.modules.extraction.service import TextExtractor, extract_pdf_text
from rfq_sheet.modules.quota.service import UploadQuota
from rfq_sheet.modules.quota.store import get_quota_store

_chat_model: ChatModel | None = None


def get_chat_model() -> ChatModel:
    global _chat_model  # noqa: PLW0603
    if _chat_model is None:
        _chat_model = OpenAIChatModel()
    return _chat_model


def get_text_extractor() -> TextExtractor:
    return extract_pdf_text


def get_upload_quota() -> UploadQuota:
    return UploadQuota(get_quota_store())
