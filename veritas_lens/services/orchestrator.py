"""
orchestrator.py — The staged analysis state machine.

Architecture:

  INIT            progress   0   reset state, open a new generation
  HASHING         progress  20   digest service over the file bytes
  LOADING_MODELS  progress  40   first simulated warm-up pause
  LOADING_MODELS  progress  50   second simulated warm-up pause
  INFERENCE       progress  90   classification service → raw payload
  COMPLETE        progress 100   normalise, publish the report

Every transition sets stage + progress and appends exactly one log line in a
single synchronous step, then notifies listeners with an immutable snapshot.
The pipeline only suspends at the digest call, the two pauses and the
classification call.

Single flight: start() while a run is in progress is rejected without
touching state. There is no cancellation; reset() (new file selected) bumps
the generation counter, and a continuation that wakes up under an older
generation returns RunSupersededError without applying anything.

start() never raises pipeline errors. Callers get either the published
ForensicReport or an AnalysisFailure, and can read the same outcome from
`state` / `report`. Unexpected exceptions from collaborators are reported
the same way; cancelling the awaiting task records FAILED and re-raises.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from veritas_lens.ai.forensic_classifier import Classifier, gemini_classifier
from veritas_lens.core.config import settings
from veritas_lens.core.errors import (
    AnalysisError,
    AnalysisInProgressError,
    ClassificationFailureError,
    DigestFailureError,
    InputMissingError,
    RunSupersededError,
)
from veritas_lens.models.forensic import (
    AnalysisSnapshot,
    AnalysisState,
    ForensicReport,
    MediaKind,
    SelectedFile,
    Stage,
)
from veritas_lens.services.digest import Digester, sha256_digester
from veritas_lens.services.report_normalizer import normalize, parse_raw_payload
from veritas_lens.services.timing import FixedDelayTiming, StageTiming

logger = logging.getLogger(__name__)

StateListener = Callable[[AnalysisSnapshot], None]


@dataclass(frozen=True)
class AnalysisFailure:
    error: AnalysisError

    @property
    def stage(self) -> str:
        return self.error.stage

    @property
    def detail(self) -> str:
        return self.error.detail


AnalysisOutcome = Union[ForensicReport, AnalysisFailure]


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class AnalysisOrchestrator:
    """
    Owns one AnalysisState and the last published ForensicReport.

    Collaborators are injected so tests can swap in fakes:
      digester   — Digester protocol (default: SHA-256 in a worker thread)
      classifier — Classifier protocol (default: Gemini meta-classifier)
      timing     — StageTiming policy for the warm-up pauses
    """

    def __init__(
        self,
        digester: Digester = sha256_digester,
        classifier: Classifier = gemini_classifier,
        timing: Optional[StageTiming] = None,
    ) -> None:
        self.digester = digester
        self.classifier = classifier
        self.timing = timing or FixedDelayTiming(settings.model_warmup_delay_s)
        self._state = AnalysisState()
        self._report: Optional[ForensicReport] = None
        self._generation = 0
        self._listeners: list[StateListener] = []

    # ── Read side ─────────────────────────────────────────────────────────────

    @property
    def state(self) -> AnalysisSnapshot:
        return self._state.snapshot()

    @property
    def report(self) -> Optional[ForensicReport]:
        return self._report

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # ── State mutation (all synchronous) ──────────────────────────────────────

    def _notify(self) -> None:
        snapshot = self._state.snapshot()
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("State listener %r failed", listener)

    def _transition(self, stage: Stage, progress: int, message: str, running: bool = True) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self._state.current_stage = stage
        self._state.progress = progress
        self._state.log.append(f"[{stamp}] {message}")
        self._state.is_running = running
        logger.info("[%s %d%%] %s", stage.value, progress, message)
        self._notify()

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise RunSupersededError(
                f"Run generation {generation} superseded by {self._generation}"
            )

    def reset(self) -> None:
        """Fresh idle state for a newly selected file; any in-flight run becomes stale."""
        self._generation += 1
        self._state = AnalysisState()
        logger.debug("State reset (generation=%d)", self._generation)
        self._notify()

    # ── Pipeline ──────────────────────────────────────────────────────────────

    async def start(
        self,
        file: Optional[SelectedFile],
        media_hint: Optional[MediaKind] = None,
        context_claim: Optional[str] = None,
    ) -> AnalysisOutcome:
        if file is None:
            logger.warning("Analysis requested with no file selected")
            return AnalysisFailure(InputMissingError("No file selected."))
        if self._state.is_running:
            logger.warning("Analysis already running — start(%s) rejected", file.name)
            return AnalysisFailure(
                AnalysisInProgressError("An analysis is already running.", stage=self._state.current_stage.value)
            )

        self._generation += 1
        generation = self._generation
        self._state = AnalysisState(is_running=True)
        self._transition(Stage.INIT, 0, "Initializing core modules.")

        try:
            report = await self._run(generation, file, media_hint, context_claim)
        except RunSupersededError as exc:
            logger.info("Discarding stale run for %s: %s", file.name, exc.detail)
            return AnalysisFailure(exc)
        except AnalysisError as exc:
            return self._fail(generation, file, exc)
        except Exception as exc:
            logger.exception("Unexpected error while analysing %s", file.name)
            return self._fail(
                generation, file, AnalysisError(_describe(exc), stage=self._state.current_stage.value)
            )
        except asyncio.CancelledError:
            if generation == self._generation:
                self._transition(
                    Stage.FAILED, self._state.progress, "CRITICAL ERROR: Analysis cancelled.", running=False
                )
            raise

        self._report = report
        self._transition(Stage.COMPLETE, 100, "Report generated successfully.", running=False)
        return report

    def _fail(self, generation: int, file: SelectedFile, exc: AnalysisError) -> AnalysisFailure:
        if generation != self._generation:
            logger.info("Discarding failure of stale run for %s: %s", file.name, exc.detail)
            return AnalysisFailure(RunSupersededError(exc.detail, stage=exc.stage))
        logger.error("Analysis of %s failed at %s: %s", file.name, exc.stage, exc.detail)
        self._transition(
            Stage.FAILED, self._state.progress, f"CRITICAL ERROR: {exc.detail}", running=False
        )
        return AnalysisFailure(exc)

    async def _run(
        self,
        generation: int,
        file: SelectedFile,
        media_hint: Optional[MediaKind],
        context_claim: Optional[str],
    ) -> ForensicReport:
        try:
            file_hash = await self.digester.digest(file.content)
        except Exception as exc:
            raise DigestFailureError(_describe(exc)) from exc
        self._ensure_current(generation)
        self._transition(
            Stage.HASHING, 20,
            f"Hashed {file.name} ({file.size_mb}MB). SHA-256: {file_hash[:16]}...",
        )

        await self.timing.pause(1)
        self._ensure_current(generation)
        self._transition(Stage.LOADING_MODELS, 40, "Loading FaceForensics++ (Xception) weights...")

        await self.timing.pause(2)
        self._ensure_current(generation)
        self._transition(Stage.LOADING_MODELS, 50, "Initializing DeepFake-o-Matic ensemble...")

        media_kind = media_hint if media_hint is not None else MediaKind.from_content_type(file.content_type)
        try:
            raw = await self.classifier.classify(
                file.content, media_kind, context_claim, mime_type=file.content_type
            )
            payload = parse_raw_payload(raw)
        except ClassificationFailureError:
            raise
        except Exception as exc:
            raise ClassificationFailureError(_describe(exc)) from exc
        self._ensure_current(generation)
        self._transition(Stage.INFERENCE, 90, "Inference complete. Aggregating results.")

        return normalize(payload, file, media_kind, file_hash)
