from __future__ import annotations

import io
import math
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event, log_exception, monotonic_ms
from rfq_sheet.modules.extraction.schemas import LineItem

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADERS: tuple[str, ...] = (
    "Sl. No",
    "Description",
    "Size",
    "Quantity",
    "UOM",
    "Unit Price",
    "Total Price",
)
GRAND_TOTAL_LABEL = "GRAND TOTAL"

HEADER_ROW = 1
DATA_START_ROW = 2

COL_SLNO = 1
COL_DESCRIPTION = 2
COL_SIZE = 3
COL_QUANTITY = 4
COL_UOM = 5
COL_UNIT_PRICE = 6
COL_TOTAL_PRICE = 7

HEADER_FONT_SIZE = 18
BODY_FONT_SIZE = 14
MIN_COLUMN_WIDTH = 10
COLUMN_WIDTH_PADDING = 4

_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
_SOLID = Side(style="thin")
_DOTTED = Side(style="dotted")
_HEADER_BORDER = Border(left=_SOLID, right=_SOLID, top=_SOLID, bottom=_SOLID)
_BODY_BORDER = Border(left=_DOTTED, right=_DOTTED, top=_DOTTED, bottom=_DOTTED)

_THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")


class ExportFailedError(RuntimeError):
    pass


@dataclass(frozen=True)
class SheetLayout:
    data_rows: int
    total_row: int

    @property
    def last_data_row(self) -> int:
        return DATA_START_ROW + self.data_rows - 1


def build_materials_xlsx(items: Sequence[LineItem]) -> bytes:
    """Render included items to XLSX bytes, or raise `ExportFailedError`."""
    start = time.monotonic()
    included = sum(1 for i in items if i.include)
    log_event(logger, "export.start", item_count=len(items), included_count=included)
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = settings.export_sheet_title
        layout = write_materials_sheet(ws, items)
        out = io.BytesIO()
        wb.save(out)
    except Exception as e:
        log_exception(logger, "export.error", duration_ms=monotonic_ms(start))
        raise ExportFailedError("Excel export failed") from e

    body = out.getvalue()
    log_event(
        logger,
        "export.finish",
        data_rows=layout.data_rows,
        byte_size=len(body),
        duration_ms=monotonic_ms(start),
    )
    return body


def write_materials_sheet(ws: Worksheet, items: Sequence[LineItem]) -> SheetLayout:
    for col, header in enumerate(HEADERS, start=1):
        ws.cell(row=HEADER_ROW, column=col, value=header)

    row = DATA_START_ROW
    slno = 0
    for item in items:
        if not item.include:
            continue
        slno += 1
        ws.cell(row=row, column=COL_SLNO, value=slno)
        _write_text(ws, row=row, column=COL_DESCRIPTION, text=item.description_raw)
        _write_text(ws, row=row, column=COL_SIZE, text=item.size_raw)
        ws.cell(row=row, column=COL_QUANTITY, value=coerce_quantity(item.quantity_raw))
        _write_text(ws, row=row, column=COL_UOM, text=item.uom_raw)
        ws.cell(row=row, column=COL_UNIT_PRICE, value=None)
        ws.cell(row=row, column=COL_TOTAL_PRICE, value=row_total_formula(row))
        row += 1

    layout = SheetLayout(data_rows=slno, total_row=row)
    ws.cell(row=layout.total_row, column=COL_DESCRIPTION, value=GRAND_TOTAL_LABEL)
    ws.cell(row=layout.total_row, column=COL_TOTAL_PRICE, value=grand_total_formula(layout))

    _apply_styles(ws, layout)
    _autosize_columns(ws, layout)
    return layout


def coerce_quantity(raw: str) -> int | float:
    """Numeric value of a raw quantity; anything unparsable becomes 0."""
    s = (raw or "").strip()
    if "_" in s:
        return 0
    if _THOUSANDS_RE.match(s):
        s = s.replace(",", "")
    try:
        value = float(s)
    except ValueError:
        return 0
    if not math.isfinite(value):
        return 0
    if value.is_integer():
        return int(value)
    return value


def row_total_formula(row: int) -> str:
    price = f"{get_column_letter(COL_UNIT_PRICE)}{row}"
    qty = f"{get_column_letter(COL_QUANTITY)}{row}"
    return f'=IF({price}="","",{price}*{qty})'


def grand_total_formula(layout: SheetLayout) -> str:
    if layout.data_rows <= 0:
        # No data cells to reference; SUM(G2:G1) would point back at the total cell.
        return "=SUM(0)"
    col = get_column_letter(COL_TOTAL_PRICE)
    return f"=SUM({col}{DATA_START_ROW}:{col}{layout.last_data_row})"


def _apply_styles(ws: Worksheet, layout: SheetLayout) -> None:
    for col in range(1, len(HEADERS) + 1):
        cell = ws.cell(row=HEADER_ROW, column=col)
        cell.alignment = _ALIGNMENT
        cell.font = Font(bold=True, size=HEADER_FONT_SIZE)
        cell.border = _HEADER_BORDER

    for row in range(DATA_START_ROW, layout.total_row + 1):
        bold = row == layout.total_row
        for col in range(1, len(HEADERS) + 1):
            cell = ws.cell(row=row, column=col)
            cell.alignment = _ALIGNMENT
            cell.font = Font(bold=bold, size=BODY_FONT_SIZE)
            cell.border = _BODY_BORDER


def _autosize_columns(ws: Worksheet, layout: SheetLayout) -> None:
    for col in range(1, len(HEADERS) + 1):
        longest = MIN_COLUMN_WIDTH
        for row in range(HEADER_ROW, layout.total_row + 1):
            longest = max(longest, len(_rendered_text(ws.cell(row=row, column=col))))
        ws.column_dimensions[get_column_letter(col)].width = longest + COLUMN_WIDTH_PADDING


def _write_text(ws: Worksheet, *, row: int, column: int, text: str) -> None:
    cell = ws.cell(row=row, column=column, value=ILLEGAL_CHARACTERS_RE.sub("", text or ""))
    # Item text is literal even when it looks like a formula.
    if cell.data_type == "f":
        cell.data_type = "s"


def _rendered_text(cell) -> str:
    if cell.value is None or cell.data_type == "f":
        return ""
    return str(cell.value)
