from __future__ import annotations

import io

from openpyxl import load_workbook

PDF_STUB = b"%PDF-1.4\n% stub document\n"


def test_single_item_document_round_trips_to_one_numbered_row(client, chat_model, document_text):
    document_text["text"] = "REQUEST FOR QUOTATION\n1  Gate valve DN50 PN16   10  nos\n"
    chat_model.reply = (
        "```json\n"
        '{"items": [{"description_raw": "Gate valve", "size_raw": "DN50 PN16", '
        '"quantity_raw": "10", "uom_raw": "nos"}]}\n'
        "```"
    )

    extracted = client.post(
        "/api/extract", files={"pdf": ("rfq.pdf", PDF_STUB, "application/pdf")}
    )
    assert extracted.status_code == 200
    items = extracted.json()["items"]
    assert items == [
        {
            "description_raw": "Gate valve",
            "size_raw": "DN50 PN16",
            "quantity_raw": "10",
            "uom_raw": "nos",
            "include": True,
        }
    ]

    exported = client.post("/api/export", json={"items": items})
    assert exported.status_code == 200

    ws = load_workbook(io.BytesIO(exported.content)).active
    assert ws.max_row == 3
    assert ws["A2"].value == 1
    assert ws["B2"].value == "Gate valve"
    assert ws["D2"].value == 10
    assert ws["E2"].value == "nos"
    assert ws["G2"].value == '=IF(F2="","",F2*D2)'
    assert ws["B3"].value == "GRAND TOTAL"
    assert ws["G3"].value == "=SUM(G2:G2)"


def test_reviewed_items_export_only_kept_rows(client, chat_model):
    chat_model.reply = (
        '{"items": ['
        '{"description_raw": "Elbow 90", "quantity_raw": "4", "uom_raw": "nos"},'
        '{"description_raw": "Terms and conditions", "quantity_raw": "", "uom_raw": ""},'
        '{"description_raw": "Flange", "quantity_raw": "2", "uom_raw": "nos"}'
        "]}"
    )
    items = client.post(
        "/api/extract", files={"pdf": ("rfq.pdf", PDF_STUB, "application/pdf")}
    ).json()["items"]

    # Reviewer drops the stray row and corrects a quantity.
    items[1]["include"] = False
    items[2]["quantity_raw"] = "3"

    ws = load_workbook(
        io.BytesIO(client.post("/api/export", json={"items": items}).content)
    ).active
    assert [ws.cell(row=r, column=1).value for r in (2, 3)] == [1, 2]
    assert [ws.cell(row=r, column=2).value for r in (2, 3)] == ["Elbow 90", "Flange"]
    assert ws["D3"].value == 3
    assert ws["G4"].value == "=SUM(G2:G3)"


def test_empty_export_has_header_and_grand_total_only(client):
    ws = load_workbook(
        io.BytesIO(client.post("/api/export", json={"items": []}).content)
    ).active
    assert ws.max_row == 2
    assert ws["A1"].value == "Sl. No"
    assert ws["B2"].value == "GRAND TOTAL"
    assert ws["G2"].value == "=SUM(0)"
