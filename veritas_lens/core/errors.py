"""
errors.py — Failure taxonomy for the analysis pipeline.

None of these escape AnalysisOrchestrator.start(): the orchestrator
catches them at its boundary, records a FAILED state (or, for the
rejection types, leaves state untouched) and returns an AnalysisFailure
carrying the error. Callers inspect state, not exceptions.

  InputMissingError          — run requested with no file selected
  AnalysisInProgressError    — single-flight guard rejected a second start
  DigestFailureError         — digest service raised; fatal at HASHING
  ClassificationFailureError — remote call raised or returned garbage; fatal at INFERENCE
  RunSupersededError         — a newer file selection discarded this run
"""

from typing import Optional


class AnalysisError(Exception):
    """Base class for every pipeline failure."""

    # Stage name at which the failure is attributed ("" = before any stage).
    stage: str = ""

    def __init__(self, detail: str, stage: Optional[str] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if stage is not None:
            self.stage = stage


class InputMissingError(AnalysisError):
    pass


class AnalysisInProgressError(AnalysisError):
    pass


class DigestFailureError(AnalysisError):
    stage = "HASHING"


class ClassificationFailureError(AnalysisError):
    stage = "INFERENCE"


class RunSupersededError(AnalysisError):
    pass
