"""
test_session.py — Tests for AnalysisSession, SessionRegistry and report views.

Run:
    pytest tests/test_session.py -v
"""

import json

from veritas_lens.core.errors import InputMissingError
from veritas_lens.models.forensic import ForensicReport, MediaKind, SelectedFile, Stage
from veritas_lens.services.orchestrator import AnalysisFailure, AnalysisOrchestrator
from veritas_lens.services.report_normalizer import normalize, parse_raw_payload
from veritas_lens.services.report_views import authenticity_band, summarize_report, verdict_label
from veritas_lens.services.session import AnalysisSession, SessionRegistry
from veritas_lens.services.timing import NoDelayTiming


class RecordingClassifier:
    def __init__(self, raw: str = "{}"):
        self.raw = raw
        self.calls = []

    async def classify(self, content, media_kind, context_claim, mime_type="application/octet-stream"):
        self.calls.append((media_kind, context_claim))
        return self.raw


class StaticDigester:
    async def digest(self, content):
        return "0" * 64


def _session(raw: str = "{}") -> tuple[AnalysisSession, RecordingClassifier]:
    classifier = RecordingClassifier(raw)
    orch = AnalysisOrchestrator(digester=StaticDigester(), classifier=classifier, timing=NoDelayTiming())
    return AnalysisSession("s1", orch), classifier


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _registry(clock=None, ttl_s=3600.0, max_sessions=100) -> SessionRegistry:
    return SessionRegistry(
        lambda: AnalysisOrchestrator(timing=NoDelayTiming()),
        ttl_s=ttl_s,
        max_sessions=max_sessions,
        clock=clock or FakeClock(),
    )


# ── AnalysisSession ───────────────────────────────────────────────────────────

class TestAnalysisSession:

    async def test_run_without_file_is_input_missing(self):
        session, classifier = _session()
        outcome = await session.run()
        assert isinstance(outcome, AnalysisFailure)
        assert isinstance(outcome.error, InputMissingError)
        assert session.orchestrator.state.current_stage == Stage.IDLE
        assert classifier.calls == []

    async def test_media_kind_derived_at_selection(self):
        session, classifier = _session()
        session.select_file(SelectedFile.from_bytes("a.mp3", "audio/mpeg", b"id3"))
        assert session.media_kind == MediaKind.AUDIO
        await session.run()
        assert classifier.calls[0][0] == MediaKind.AUDIO

    async def test_claim_stored_at_selection_is_used(self):
        session, classifier = _session()
        session.select_file(SelectedFile.from_bytes("a.png", "image/png", b"x"), context_claim="Rome, 2019")
        await session.run()
        assert classifier.calls[0][1] == "Rome, 2019"

    async def test_claim_override_at_run(self):
        session, classifier = _session()
        session.select_file(SelectedFile.from_bytes("a.png", "image/png", b"x"), context_claim="Rome")
        await session.run(context_claim="")
        assert classifier.calls[0][1] == ""

    async def test_select_file_resets_state_keeps_report(self):
        session, _ = _session(json.dumps({"reasoning": "ok"}))
        session.select_file(SelectedFile.from_bytes("a.png", "image/png", b"x"))
        report = await session.run()
        assert isinstance(report, ForensicReport)

        session.select_file(SelectedFile.from_bytes("b.png", "image/png", b"y"))

        state = session.orchestrator.state
        assert state.current_stage == Stage.IDLE
        assert state.log == ()
        assert session.report is report

    async def test_run_clears_pending_flag(self):
        session, _ = _session()
        session.select_file(SelectedFile.from_bytes("a.png", "image/png", b"x"))
        session.run_pending = True
        assert session.is_busy is True

        await session.run()

        assert session.run_pending is False
        assert session.is_busy is False


# ── SessionRegistry ───────────────────────────────────────────────────────────

class TestSessionRegistry:

    def test_create_and_get(self):
        registry = _registry()
        session = registry.create()
        assert registry.get(session.session_id) is session
        assert len(registry) == 1

    def test_sessions_have_separate_orchestrators(self):
        registry = _registry()
        a, b = registry.create(), registry.create()
        assert a.session_id != b.session_id
        assert a.orchestrator is not b.orchestrator

    def test_discard(self):
        registry = _registry()
        session = registry.create()
        assert registry.discard(session.session_id) is True
        assert registry.get(session.session_id) is None
        assert registry.discard("missing") is False

    def test_idle_sessions_expire(self):
        clock = FakeClock()
        registry = _registry(clock, ttl_s=60)
        stale = registry.create()
        clock.now += 30
        fresh = registry.create()
        clock.now += 45

        assert registry.get(stale.session_id) is None
        assert registry.get(fresh.session_id) is fresh
        assert len(registry) == 1

    def test_access_keeps_session_alive(self):
        clock = FakeClock()
        registry = _registry(clock, ttl_s=60)
        session = registry.create()
        for _ in range(3):
            clock.now += 50
            assert registry.get(session.session_id) is session

    def test_busy_session_does_not_expire(self):
        clock = FakeClock()
        registry = _registry(clock, ttl_s=60)
        session = registry.create()
        session.run_pending = True
        clock.now += 600
        assert registry.get(session.session_id) is session

    def test_capacity_evicts_least_recently_used_idle_session(self):
        clock = FakeClock()
        registry = _registry(clock, max_sessions=2)
        first = registry.create()
        clock.now += 1
        second = registry.create()
        clock.now += 1
        registry.get(first.session_id)
        clock.now += 1

        third = registry.create()

        assert len(registry) == 2
        assert registry.get(second.session_id) is None
        assert registry.get(first.session_id) is first
        assert registry.get(third.session_id) is third

    def test_capacity_skips_busy_sessions(self):
        clock = FakeClock()
        registry = _registry(clock, max_sessions=1)
        busy = registry.create()
        busy.run_pending = True
        clock.now += 1

        other = registry.create()

        assert registry.get(busy.session_id) is busy
        assert registry.get(other.session_id) is other


# ── Report views ──────────────────────────────────────────────────────────────

def _report(**payload) -> ForensicReport:
    file = SelectedFile.from_bytes("x.png", "image/png", b"x")
    return normalize(parse_raw_payload(payload), file, MediaKind.IMAGE, "0" * 64)


class TestReportViews:

    def test_bands(self):
        assert authenticity_band(95) == "HIGH"
        assert authenticity_band(80) == "MEDIUM"
        assert authenticity_band(51) == "MEDIUM"
        assert authenticity_band(50) == "LOW"
        assert authenticity_band(0) == "LOW"

    def test_verdict_label(self):
        assert verdict_label(_report(isManipulated=True)) == "MANIPULATION DETECTED"
        assert verdict_label(_report()) == "LIKELY AUTHENTIC"

    def test_summary_counts(self):
        report = _report(
            authenticityScore=30,
            isManipulated=True,
            manipulationType=["Face Swap"],
            ensembleData=[{"modelName": "A"}, {"modelName": "B"}],
            suspiciousRegions=[{"x": 1, "y": 1, "width": 5, "height": 5, "label": "eye", "confidence": 70}],
            semanticMismatchDetected=True,
        )
        summary = summarize_report(report)
        assert summary.case_id == report.id
        assert summary.authenticity_band == "LOW"
        assert summary.model_count == 2
        assert summary.region_count == 1
        assert summary.manipulation_types == ["Face Swap"]
        assert summary.semantic_mismatch_detected is True
