"""
forensic.py — Data model for the forensic analysis pipeline.

  MediaKind          — IMAGE / VIDEO / AUDIO / UNKNOWN, derived from the declared content type
  Stage              — pipeline stage labels shown by the view layer
  SelectedFile       — the file handed to the orchestrator (name, type, size, bytes)
  AnalysisState      — mutable progress record owned by the orchestrator
  AnalysisSnapshot   — immutable copy of AnalysisState handed to readers
  ModelConsensus     — one sub-model verdict inside a report
  SuspiciousRegion   — one flagged rectangle, percentage coordinates
  RawPayload         — validated-on-read view of the classification service output
  ForensicReport     — the immutable artefact of one successful run
  ReportSummary      — dashboard projection of a report

Field names are snake_case; ModelConsensus / SuspiciousRegion / RawPayload
also accept the camelCase keys the classification service emits.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_serializer,
    field_validator,
)

logger = logging.getLogger(__name__)

ConfidenceLevel = Literal["LOW", "MEDIUM", "HIGH"]


# ── Enumerations ──────────────────────────────────────────────────────────────

class MediaKind(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "MediaKind":
        """Prefix match on the declared MIME type ("image/png" → IMAGE)."""
        ct = (content_type or "").lower()
        for prefix, kind in (("image", cls.IMAGE), ("video", cls.VIDEO), ("audio", cls.AUDIO)):
            if ct.startswith(prefix):
                return kind
        return cls.UNKNOWN


class Stage(str, Enum):
    IDLE = "IDLE"
    INIT = "INIT"
    HASHING = "HASHING"
    LOADING_MODELS = "LOADING_MODELS"
    INFERENCE = "INFERENCE"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


# ── Pipeline input / state (internal; dataclasses like the AI pipelines) ──────

@dataclass(frozen=True)
class SelectedFile:
    name: str
    content_type: str
    size: int       # bytes, as declared by the caller
    content: bytes

    @classmethod
    def from_bytes(cls, name: str, content_type: str, content: bytes) -> "SelectedFile":
        return cls(name=name, content_type=content_type, size=len(content), content=content)

    @property
    def size_mb(self) -> str:
        return f"{self.size / 1024 / 1024:.2f}"


class AnalysisSnapshot(BaseModel):
    """Read-only copy of AnalysisState; safe to hold after the run moves on."""

    model_config = ConfigDict(frozen=True)

    is_running: bool
    progress: int = Field(ge=0, le=100)
    current_stage: Stage
    log: tuple[str, ...] = ()


@dataclass
class AnalysisState:
    is_running: bool = False
    progress: int = 0
    current_stage: Stage = Stage.IDLE
    log: list[str] = field(default_factory=list)

    def snapshot(self) -> AnalysisSnapshot:
        return AnalysisSnapshot(
            is_running=self.is_running,
            progress=self.progress,
            current_stage=self.current_stage,
            log=tuple(self.log),
        )


# ── Report sub-models ─────────────────────────────────────────────────────────

class ModelConsensus(BaseModel):
    """One sub-model verdict, in the order the service returned it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, protected_namespaces=())

    model_name: str = Field(default="", alias="modelName")
    score: float = 0          # 0–100
    confidence: ConfidenceLevel = "LOW"
    focus_area: str = Field(default="", alias="focusArea")  # e.g. "Facial Landmarks"

    @field_validator("confidence", mode="before")
    @classmethod
    def _upper_confidence(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class SuspiciousRegion(BaseModel):
    """Rectangle anchored top-left; all four coordinates are percentages."""

    model_config = ConfigDict(frozen=True)

    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    label: str = ""
    confidence: float = 0     # 0–100


# ── Raw classification payload ────────────────────────────────────────────────

class RawPayload(BaseModel):
    """
    The classification service output, read defensively.

    Every field is optional. A value of the wrong shape is read as absent
    (None) instead of failing the whole payload, and a malformed entry in a
    list field is dropped without discarding its siblings. Range checks are
    deliberately absent: scores outside 0–100 pass through unchanged.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    authenticity_score: Optional[float] = Field(default=None, alias="authenticityScore")
    is_manipulated: Optional[bool] = Field(default=None, alias="isManipulated")
    manipulation_type: Optional[list[str]] = Field(default=None, alias="manipulationType")
    ensemble_data: Optional[list[ModelConsensus]] = Field(default=None, alias="ensembleData")
    semantic_mismatch_detected: Optional[bool] = Field(default=None, alias="semanticMismatchDetected")
    semantic_analysis_text: Optional[str] = Field(default=None, alias="semanticAnalysisText")
    reasoning: Optional[str] = None
    suspicious_regions: Optional[list[SuspiciousRegion]] = Field(default=None, alias="suspiciousRegions")
    metadata: Optional[dict[str, str]] = None

    @field_validator(
        "authenticity_score",
        "is_manipulated",
        "semantic_mismatch_detected",
        "semantic_analysis_text",
        "reasoning",
        "metadata",
        mode="wrap",
    )
    @classmethod
    def _absent_when_malformed(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            logger.warning("Ignoring malformed %r in classification payload", info.field_name)
            return None

    @field_validator("manipulation_type", "ensemble_data", "suspicious_regions", mode="wrap")
    @classmethod
    def _drop_malformed_items(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning("Ignoring non-list %r in classification payload", info.field_name)
            return None
        kept: list = []
        for item in value:
            try:
                kept.extend(handler([item]))
            except ValidationError:
                logger.warning("Dropping malformed %r entry: %r", info.field_name, item)
        return kept

    @field_validator("metadata", mode="before")
    @classmethod
    def _stringify_metadata(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items() if v is not None}
        return value


# ── Report ────────────────────────────────────────────────────────────────────

class ForensicReport(BaseModel):
    """A completed, fully populated analysis report. Never mutated once published."""

    model_config = ConfigDict(frozen=True)

    id: str                                  # "CASE-<truncated µs timestamp>"
    file_name: str
    file_type: MediaKind
    timestamp: str                           # ISO-8601, UTC
    file_hash: str                           # SHA-256 hex

    authenticity_score: float                # 100 = authentic
    is_manipulated: bool
    manipulation_type: tuple[str, ...] = ()

    ensemble_data: tuple[ModelConsensus, ...] = ()

    # Cheapfake check: claim vs. content
    semantic_mismatch_detected: bool = False
    semantic_analysis_text: str = ""

    reasoning: str = Field(min_length=1)
    suspicious_regions: tuple[SuspiciousRegion, ...] = ()

    # Read-only view; serialised back to a plain object.
    metadata: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("metadata")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _serialize_metadata(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)


AuthenticityBand = Literal["HIGH", "MEDIUM", "LOW"]


class ReportSummary(BaseModel):
    """Headline figures for the overview tab."""

    case_id: str
    verdict: str                             # "MANIPULATION DETECTED" | "LIKELY AUTHENTIC"
    authenticity_score: float
    authenticity_band: AuthenticityBand
    model_count: int
    region_count: int
    manipulation_types: list[str] = Field(default_factory=list)
    semantic_mismatch_detected: bool
