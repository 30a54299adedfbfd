"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / monitoring tools
  - The dashboard, to check API connectivity before uploading evidence

Reports which classification mode is active so callers can tell canned
mock verdicts apart from real model output.
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from veritas_lens import __version__
from veritas_lens.ai.gemini_client import gemini_client
from veritas_lens.core.config import settings
from veritas_lens.services.session import session_registry

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str           # Always "ok" if the API process is alive
    version: str
    classifier_mode: str  # "mock" | "real"
    active_sessions: int
    environment: str


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        classifier_mode="mock" if gemini_client.mock_mode else "real",
        active_sessions=len(session_registry),
        environment=settings.environment,
    )
