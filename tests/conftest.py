from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any rfq_sheet imports (settings are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("QUOTA_BACKEND", "memory")
os.environ.setdefault("UPLOAD_SCRATCH_PATH", ".tmp_upload_scratch_test")
os.environ.setdefault("OPENAI_API_KEY", "test-key")

PDF_STUB = b"%PDF-1.4\n% stub document\n"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChatModel:
    def __init__(self, reply: str = '{"items": []}', *, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list = []

    def complete(self, prompt) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(autouse=True)
def _reset_process_state() -> None:
    import rfq_sheet.api.deps as deps_mod
    import rfq_sheet.modules.quota.store as store_mod

    store_mod._store = None
    deps_mod._chat_model = None

    scratch = Path(os.environ["UPLOAD_SCRATCH_PATH"])
    if scratch.exists():
        shutil.rmtree(scratch)

    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chat_model() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def document_text() -> dict[str, str]:
    # Mutable so a test can set the text the fake extractor returns.
    return {"text": "Item 1: GI pipe 2 inch, 10 nos"}


@pytest.fixture
def client(chat_model, document_text, clock):
    from fastapi.testclient import TestClient

    from rfq_sheet.api.deps import get_chat_model, get_text_extractor, get_upload_quota
    from rfq_sheet.main import app
    from rfq_sheet.modules.quota.service import UploadQuota
    from rfq_sheet.modules.quota.store import MemoryQuotaStore

    quota = UploadQuota(MemoryQuotaStore(clock=clock), limit=3, window_seconds=86400, clock=clock)

    app.dependency_overrides[get_chat_model] = lambda: chat_model
    app.dependency_overrides[get_text_extractor] = lambda: (lambda _body: document_text["text"])
    app.dependency_overrides[get_upload_quota] = lambda: quota
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_chat_model():
    return FakeChatModel
