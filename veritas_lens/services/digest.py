"""
digest.py — Content digest service.

The orchestrator only depends on the Digester protocol; Sha256Digester is
the production implementation. Hashing runs in a worker thread so a
multi-megabyte upload doesn't stall the event loop.
"""

import asyncio
import hashlib
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Digester(Protocol):
    async def digest(self, content: bytes) -> str:
        """Return a deterministic hex digest of `content`."""
        ...


class Sha256Digester:
    algorithm = "SHA-256"

    async def digest(self, content: bytes) -> str:
        hex_digest = await asyncio.to_thread(lambda: hashlib.sha256(content).hexdigest())
        logger.debug("Digested %d bytes → %s…", len(content), hex_digest[:16])
        return hex_digest


# Module-level singleton
sha256_digester = Sha256Digester()
