"""
pytest configuration and shared fixtures for the Veritas Lens tests.

Key concern: tests must not require a Gemini API key or wait on the
simulated model warm-up. We achieve this by:
  1. Setting AI_MOCK_MODE=true so GeminiClient returns canned payloads.
  2. Setting MODEL_WARMUP_DELAY_S=0 so orchestrators built from settings
     don't sleep between stages.

Both must happen BEFORE any veritas_lens module is imported, because
Settings and the module-level singletons are created at import time.
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("MODEL_WARMUP_DELAY_S", "0")


@pytest.fixture()
async def client():
    """
    HTTPX async test client wired to the FastAPI app.

    Background tasks (analysis runs) complete before the awaited request
    returns, so a test can POST .../run and read the final state right after.
    """
    from veritas_lens.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
