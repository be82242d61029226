from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from rfq_sheet.modules.extraction.schemas import LineItem


class ExportRequest(BaseModel):
    items: list[LineItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, value: Any) -> Any:
        return [] if value is None else value
