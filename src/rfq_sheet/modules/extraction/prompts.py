from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event

logger = get_logger(__name__)

PDF_TEXT_PLACEHOLDER = "<<<PDF_TEXT_HERE>>>"
SYSTEM_PROMPT_FILENAME = "system_prompt.txt"
EXTRACTION_PROMPT_FILENAME = "item_extraction_prompt.txt"

_BUNDLED_PROMPT_DIR = Path(__file__).resolve().parent / "templates"


class PromptConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class PromptTemplates:
    system: str
    extraction: str


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


_templates: PromptTemplates | None = None


def load_prompt_templates(prompt_dir: Path | None = None) -> PromptTemplates:
    base = prompt_dir or settings.prompt_dir or _BUNDLED_PROMPT_DIR
    system = _read_template(base / SYSTEM_PROMPT_FILENAME)
    extraction = _read_template(base / EXTRACTION_PROMPT_FILENAME)
    if PDF_TEXT_PLACEHOLDER not in extraction:
        raise PromptConfigError(
            f"Extraction prompt {base / EXTRACTION_PROMPT_FILENAME} has no "
            f"{PDF_TEXT_PLACEHOLDER} placeholder"
        )
    log_event(logger, "prompts.loaded", prompt_dir=str(base))
    return PromptTemplates(system=system, extraction=extraction)


def _read_template(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PromptConfigError(f"Prompt template not readable: {path}") from e
    if not text.strip():
        raise PromptConfigError(f"Prompt template is empty: {path}")
    return text


def get_prompt_templates() -> PromptTemplates:
    global _templates  # noqa: PLW0603
    if _templates is None:
        _templates = load_prompt_templates()
    return _templates


def build_prompt_pair(text: str, *, templates: PromptTemplates | None = None) -> PromptPair:
    """
    Fill the extraction template with the document text.

    The text is inserted literally (no JSON escaping); the chat API carries it as a
    separate message field. Only the first placeholder is substituted.
    """
    tpl = templates or get_prompt_templates()
    bounded = _truncate_text(text, max_chars=int(settings.prompt_max_chars or 0))
    return PromptPair(
        system=tpl.system,
        user=tpl.extraction.replace(PDF_TEXT_PLACEHOLDER, bounded, 1),
    )


def _truncate_text(text: str, *, max_chars: int) -> str:
    t = text or ""
    if max_chars <= 0 or len(t) <= max_chars:
        return t
    return t[: max(max_chars - 20, 0)].rstrip() + "\n\n[TRUNCATED]"
