from __future__ import annotations

import json
import math
from typing import Any

from pydantic import BaseModel, field_validator

LINE_ITEM_TEXT_FIELDS: tuple[str, ...] = (
    "description_raw",
    "size_raw",
    "quantity_raw",
    "uom_raw",
)


def as_raw_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    # Nested JSON from the model is kept as compact JSON text.
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


class LineItem(BaseModel):
    description_raw: str = ""
    size_raw: str = ""
    quantity_raw: str = ""
    uom_raw: str = ""
    include: bool = True

    @field_validator(*LINE_ITEM_TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return as_raw_text(value)


class ExtractResponse(BaseModel):
    status: str
    items: list[LineItem]
    message: str | None = None
