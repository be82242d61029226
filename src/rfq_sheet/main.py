from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rfq_sheet.api.router import router as api_router
from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import RequestContextMiddleware, get_logger, log_event
from rfq_sheet.modules.extraction.prompts import get_prompt_templates

logger = get_logger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # Missing or broken prompt templates stop the service here, not per request.
        get_prompt_templates()
        log_event(logger, "app.startup", environment=settings.environment)
        yield

    app = FastAPI(title="RFQ Sheet", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)
    return app


app = create_app()
