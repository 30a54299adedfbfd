"""
session.py — Per-user analysis session and the in-memory session registry.

An AnalysisSession is the explicit context the dashboard works against:
the selected file, its media kind (derived once, at selection), the
context claim, and one AnalysisOrchestrator. Nothing here is global
apart from the registry singleton used by the HTTP routes.

Selecting a new file resets the orchestrator (fresh idle state, new
generation) but keeps the last published report visible until a new run
succeeds.

Sessions hold the selected file's bytes, so the registry bounds them:
idle sessions expire after SESSION_TTL_S and, once MAX_SESSIONS are open,
creating a new one evicts the least recently used idle session. Busy
sessions (run queued or in progress) are never evicted.
"""

import logging
import secrets
import time
from typing import Callable, Optional

from veritas_lens.core.config import settings
from veritas_lens.models.forensic import ForensicReport, MediaKind, SelectedFile
from veritas_lens.services.orchestrator import AnalysisOrchestrator, AnalysisOutcome

logger = logging.getLogger(__name__)


class AnalysisSession:
    def __init__(self, session_id: str, orchestrator: AnalysisOrchestrator) -> None:
        self.session_id = session_id
        self.orchestrator = orchestrator
        self.file: Optional[SelectedFile] = None
        self.media_kind: Optional[MediaKind] = None
        self.context_claim: Optional[str] = None
        # Set when a run has been scheduled but the orchestrator hasn't started it yet.
        self.run_pending = False
        self.last_used = 0.0

    @property
    def report(self) -> Optional[ForensicReport]:
        return self.orchestrator.report

    @property
    def is_busy(self) -> bool:
        return self.run_pending or self.orchestrator.is_running

    def select_file(self, file: SelectedFile, context_claim: Optional[str] = None) -> None:
        self.file = file
        self.media_kind = MediaKind.from_content_type(file.content_type)
        self.context_claim = context_claim
        self.orchestrator.reset()
        logger.info(
            "Session %s selected %s (%s, %d bytes)",
            self.session_id, file.name, self.media_kind.value, file.size,
        )

    async def run(self, context_claim: Optional[str] = None) -> AnalysisOutcome:
        """Analyse the selected file; a claim given here replaces the stored one."""
        if context_claim is not None:
            self.context_claim = context_claim
        try:
            return await self.orchestrator.start(self.file, self.media_kind, self.context_claim)
        finally:
            self.run_pending = False


class SessionRegistry:
    def __init__(
        self,
        orchestrator_factory: Callable[[], AnalysisOrchestrator] = AnalysisOrchestrator,
        ttl_s: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator_factory = orchestrator_factory
        self._ttl_s = ttl_s if ttl_s is not None else settings.session_ttl_s
        self._max_sessions = max_sessions if max_sessions is not None else settings.max_sessions
        self._clock = clock
        self._sessions: dict[str, AnalysisSession] = {}

    def create(self) -> AnalysisSession:
        self._evict_expired()
        self._evict_for_capacity()

        session_id = secrets.token_hex(8)
        session = AnalysisSession(session_id, self._orchestrator_factory())
        session.last_used = self._clock()
        self._sessions[session_id] = session
        logger.info("Created analysis session %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        self._evict_expired()
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_used = self._clock()
        return session

    def discard(self, session_id: str) -> bool:
        """Drop a session; returns False when the id is unknown."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("Discarded analysis session %s", session_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)

    # ── Eviction ──────────────────────────────────────────────────────────────

    def _evict_expired(self) -> None:
        now = self._clock()
        for session_id, session in list(self._sessions.items()):
            if not session.is_busy and now - session.last_used > self._ttl_s:
                del self._sessions[session_id]
                logger.info("Session %s expired after %.0fs idle", session_id, now - session.last_used)

    def _evict_for_capacity(self) -> None:
        while len(self._sessions) >= self._max_sessions:
            idle = [s for s in self._sessions.values() if not s.is_busy]
            if not idle:
                logger.warning("All %d sessions are busy; exceeding max_sessions", len(self._sessions))
                return
            oldest = min(idle, key=lambda s: s.last_used)
            del self._sessions[oldest.session_id]
            logger.info("Evicted least recently used session %s", oldest.session_id)


# Module-level singleton used by routes/analysis.py
session_registry = SessionRegistry()
