"""
analysis.py — Analysis session endpoints (the dashboard's view of the pipeline).

Routes:
  POST   /api/v1/analysis/sessions                      — open a session
  DELETE /api/v1/analysis/sessions/{id}                 — close a session, freeing its file
  PUT    /api/v1/analysis/sessions/{id}/file            — select a file (+ optional claim)
  POST   /api/v1/analysis/sessions/{id}/run             — start the pipeline (rate limited)
  GET    /api/v1/analysis/sessions/{id}/state           — progress / stage / log snapshot
  GET    /api/v1/analysis/sessions/{id}/report          — last published report (or null)
  GET    /api/v1/analysis/sessions/{id}/report/summary  — overview-tab projection (or null)

HOW THE DATA FLOWS
──────────────────
1. The dashboard reads the chosen file as base64 and PUTs it with the filename
   and, when known, the browser-declared MIME type.
2. Selecting a file resets the session's state to IDLE (the previous report
   stays visible).
3. POST .../run schedules the orchestrator as a background task and answers 202
   immediately; the dashboard polls .../state for progress and log lines.
4. When the state reaches COMPLETE, .../report returns the new ForensicReport.
   On FAILED the log carries the error and the previous report is unchanged.

No authentication — sessions are identified by an unguessable id.
"""

import base64
import binascii
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from veritas_lens.core.config import settings
from veritas_lens.core.rate_limit import limiter
from veritas_lens.models.analysis_api import (
    FileSelectedResponse,
    ReportResponse,
    ReportSummaryResponse,
    RunAcceptedResponse,
    RunRequest,
    SelectFileRequest,
    SessionResponse,
)
from veritas_lens.models.forensic import AnalysisSnapshot, SelectedFile
from veritas_lens.services.report_views import summarize_report
from veritas_lens.services.session import AnalysisSession, session_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


# ── MIME type helper ──────────────────────────────────────────────────────────

_MIME_MAP = {
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".webp": "image/webp",
    ".gif":  "image/gif",
    ".mp3":  "audio/mpeg",
    ".wav":  "audio/wav",
    ".ogg":  "audio/ogg",
    ".m4a":  "audio/mp4",
    ".mp4":  "video/mp4",
    ".webm": "video/webm",
    ".mov":  "video/quicktime",
    ".avi":  "video/x-msvideo",
}


def mime_from_filename(filename: str) -> str:
    """Derive a MIME type from a filename extension."""
    ext = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return _MIME_MAP.get(ext, "application/octet-stream")


def _get_session(session_id: str) -> AnalysisSession:
    session = session_registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session():
    session = session_registry.create()
    return SessionResponse(session_id=session.session_id, state=session.orchestrator.state)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    """Close a session and release the file it holds. A queued run still finishes."""
    if not session_registry.discard(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")


@router.put("/sessions/{session_id}/file", response_model=FileSelectedResponse)
async def select_file(session_id: str, payload: SelectFileRequest):
    """
    Attach a file to the session and reset its analysis state.

    413 when the decoded file exceeds MAX_FILE_SIZE_MB, 422 when the body
    isn't valid base64.
    """
    session = _get_session(session_id)

    try:
        content = base64.b64decode(payload.file_b64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=422, detail="file_b64 is not valid base64")

    max_bytes = settings.max_file_size_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the {settings.max_file_size_mb} MB limit",
        )

    content_type = payload.content_type or mime_from_filename(payload.filename)
    session.select_file(
        SelectedFile.from_bytes(payload.filename, content_type, content),
        context_claim=payload.context_claim,
    )
    return FileSelectedResponse(
        session_id=session.session_id,
        file_name=payload.filename,
        content_type=content_type,
        size=len(content),
        media_kind=session.media_kind.value,
        state=session.orchestrator.state,
    )


@router.post("/sessions/{session_id}/run", response_model=RunAcceptedResponse, status_code=202)
@limiter.limit(settings.analysis_rate_limit)
async def run_analysis(
    request: Request,
    session_id: str,
    background_tasks: BackgroundTasks,
    payload: Optional[RunRequest] = None,
):
    """
    Schedule the analysis pipeline for the selected file.

    400 when no file is selected, 409 while a run is already queued or in
    progress (the session is marked pending as soon as the run is accepted).
    The orchestrator enforces both rules itself as well; these checks only
    give the caller a meaningful status code.
    """
    session = _get_session(session_id)
    if session.file is None:
        raise HTTPException(status_code=400, detail="No file selected for this session")
    if session.is_busy:
        raise HTTPException(status_code=409, detail="An analysis is already queued or running")

    claim = payload.context_claim if payload is not None else None
    session.run_pending = True
    background_tasks.add_task(session.run, claim)
    logger.info("Queued analysis of %s for session %s", session.file.name, session_id)
    return RunAcceptedResponse(session_id=session_id)


@router.get("/sessions/{session_id}/state", response_model=AnalysisSnapshot)
async def get_state(session_id: str):
    return _get_session(session_id).orchestrator.state


@router.get("/sessions/{session_id}/report", response_model=ReportResponse)
async def get_report(session_id: str):
    return ReportResponse(report=_get_session(session_id).report)


@router.get("/sessions/{session_id}/report/summary", response_model=ReportSummaryResponse)
async def get_report_summary(session_id: str):
    report = _get_session(session_id).report
    return ReportSummaryResponse(summary=summarize_report(report) if report is not None else None)
