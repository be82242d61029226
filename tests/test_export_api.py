from __future__ import annotations

import io

from openpyxl import load_workbook

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def test_export_returns_workbook_attachment(client):
    resp = client.post(
        "/api/export",
        json={
            "items": [
                {
                    "description_raw": "GI pipe",
                    "size_raw": "2 inch",
                    "quantity_raw": "10",
                    "uom_raw": "nos",
                    "include": True,
                },
                {
                    "description_raw": "Skipped",
                    "size_raw": "",
                    "quantity_raw": "1",
                    "uom_raw": "set",
                    "include": False,
                },
            ]
        },
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"] == XLSX
    assert resp.headers["content-disposition"] == 'attachment; filename="materials.xlsx"'

    ws = load_workbook(io.BytesIO(resp.content)).active
    assert ws["A2"].value == 1
    assert ws["B2"].value == "GI pipe"
    assert ws["D2"].value == 10
    assert ws["B3"].value == "GRAND TOTAL"
    assert ws["G3"].value == "=SUM(G2:G2)"


def test_export_accepts_numeric_quantities_and_missing_include(client):
    resp = client.post(
        "/api/export",
        json={"items": [{"description_raw": "Elbow", "quantity_raw": 4}]},
    )
    assert resp.status_code == 200
    ws = load_workbook(io.BytesIO(resp.content)).active
    assert ws["D2"].value == 4


def test_export_with_null_items_produces_empty_sheet(client):
    resp = client.post("/api/export", json={"items": None})
    assert resp.status_code == 200
    ws = load_workbook(io.BytesIO(resp.content)).active
    assert ws["B2"].value == "GRAND TOTAL"


def test_export_failure_is_generic_and_returns_no_file(client, monkeypatch):
    from rfq_sheet.modules.exports import service as export_service

    def _boom(_ws, _items):
        raise RuntimeError("disk full")

    monkeypatch.setattr(export_service, "write_materials_sheet", _boom)

    resp = client.post("/api/export", json={"items": []})
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Excel export failed"}


def test_legacy_download_path(client):
    resp = client.post("/download", json={"items": []})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == XLSX


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
