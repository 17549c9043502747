"""
Token-gated eBook routes.
/api/view/{filename} serves the viewer shell, /api/secure-pdf/{filename} streams the bytes.
Every token failure is the same 403, whatever the reason.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, PlainTextResponse, Response

from app.core.errors import ContentMissing
from app.api.dependencies import get_access_gate
from app.entitlements.gate import ContentAccessGate

router = APIRouter(prefix="/api", tags=["content"])

FORBIDDEN_TEXT = "Invalid or expired token."


def _forbidden() -> PlainTextResponse:
    return PlainTextResponse(FORBIDDEN_TEXT, status_code=403)


@router.get("/secure-pdf/{filename}")
def secure_pdf(
    filename: str,
    token: str | None = Query(None),
    gate: ContentAccessGate = Depends(get_access_gate),
) -> Response:
    decision = gate.authorize_view(filename, token)
    if not decision.authorized:
        return _forbidden()
    try:
        served = gate.stream_content(filename)
    except ContentMissing:
        return PlainTextResponse("File not found", status_code=404)
    return FileResponse(served.path, media_type=served.media_type, headers=served.headers)


@router.get("/view/{filename}")
def view(
    filename: str,
    token: str | None = Query(None),
    gate: ContentAccessGate = Depends(get_access_gate),
) -> Response:
    decision = gate.authorize_view(filename, token)
    if not decision.authorized:
        return _forbidden()
    shell = gate.render_viewer_shell(filename)
    return FileResponse(shell.path, media_type=shell.media_type, headers=shell.headers)
