from __future__ import annotations

import json
import re
from typing import Any

from rfq_sheet.core.logging import get_logger, log_event

logger = get_logger(__name__)

# C0 controls that break json.loads. Tab, LF and CR stay; nothing above U+001F is touched.
_CONTROL_CHARS_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def strip_control_chars(text: str) -> str:
    return _CONTROL_CHARS_RE.sub("", text or "")


def locate_json_block(text: str) -> str | None:
    """Return the span from the first `{` to the last `}` inclusive, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end < start:
        return None
    return text[start : end + 1]


def recover_items(content: str) -> list[Any]:
    """
    Best-effort recovery of the `items` array from a free-form model reply.

    Never raises. Prose around the JSON, markdown fences, a missing object, an
    unparsable object or a missing/non-list `items` field all yield `[]`.
    """
    cleaned = strip_control_chars(content)

    candidate = locate_json_block(cleaned)
    if candidate is None:
        log_event(
            logger,
            "extraction.recovery.no_json",
            response_chars=len(cleaned),
            response_head=cleaned[:200],
        )
        return []

    try:
        parsed = json.loads(candidate)
    except ValueError as e:
        log_event(
            logger,
            "extraction.recovery.parse_failed",
            error=str(e),
            candidate_chars=len(candidate),
            candidate_head=candidate[:200],
        )
        return []
    except RecursionError:
        log_event(logger, "extraction.recovery.parse_failed", error="nesting too deep")
        return []

    items = parsed.get("items") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        log_event(
            logger,
            "extraction.recovery.no_items",
            parsed_type=type(parsed).__name__,
        )
        return []
    return items
