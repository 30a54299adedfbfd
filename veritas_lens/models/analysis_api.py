"""
analysis_api.py — Pydantic request / response models for the analysis session API.

The view layer drives a session in three steps:
  1. create a session,
  2. select a file (base64 body + optional context claim),
  3. start a run and poll state / report until COMPLETE or FAILED.
"""

from typing import Optional

from pydantic import BaseModel, Field

from veritas_lens.models.forensic import AnalysisSnapshot, ForensicReport, ReportSummary


# ── Request models ─────────────────────────────────────────────────────────────

class SelectFileRequest(BaseModel):
    """Base64-encoded evidence file chosen by the investigator."""

    file_b64: str = Field(..., description="Base64-encoded file content (image, video or audio)")
    filename: str = Field(..., min_length=1, description="Original filename")
    content_type: Optional[str] = Field(
        default=None, description="Declared MIME type; derived from the filename when omitted"
    )
    # None = no claim given; "" = explicitly empty claim
    context_claim: Optional[str] = Field(default=None, max_length=2000)


class RunRequest(BaseModel):
    """Optional claim override for a single run."""

    context_claim: Optional[str] = Field(default=None, max_length=2000)


# ── Response models ────────────────────────────────────────────────────────────

class SessionResponse(BaseModel):
    session_id: str
    state: AnalysisSnapshot


class FileSelectedResponse(BaseModel):
    session_id: str
    file_name: str
    content_type: str
    size: int
    media_kind: str
    state: AnalysisSnapshot


class RunAcceptedResponse(BaseModel):
    session_id: str
    accepted: bool = True


class ReportResponse(BaseModel):
    report: Optional[ForensicReport] = None  # null until the first successful run


class ReportSummaryResponse(BaseModel):
    summary: Optional[ReportSummary] = None
