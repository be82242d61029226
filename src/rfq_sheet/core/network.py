from __future__ import annotations

from starlette.requests import HTTPConnection

from rfq_sheet.core.config import settings


def client_identity(conn: HTTPConnection) -> str:
    """Quota identity for a request: the peer address, or the first trusted forwarded hop."""
    if settings.trust_forwarded_for:
        forwarded = conn.headers.get("x-forwarded-for") or ""
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if conn.client and conn.client.host:
        return conn.client.host
    return "unknown"
