"""
report_normalizer.py — Turns a raw classification payload into a ForensicReport.

USAGE
─────
    from veritas_lens.services.report_normalizer import normalize, parse_raw_payload

    payload = parse_raw_payload(raw_text)          # RawPayload, never partially typed
    report = normalize(payload, selected_file, MediaKind.IMAGE, sha256_hex)

RULES
─────
  - Every report field is present; missing source fields take their defaults
    (0, False, empty tuple, "", {}), and reasoning falls back to
    REASONING_SENTINEL when absent or empty.
  - metadata = raw metadata overlaid with the computed originalSize and
    mimeType keys; computed values always win.
  - Out-of-range numbers are passed through unchanged.
  - id / timestamp are the only non-deterministic fields.
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Union

from veritas_lens.models.forensic import (
    ForensicReport,
    MediaKind,
    RawPayload,
    SelectedFile,
)

logger = logging.getLogger(__name__)

REASONING_SENTINEL = "Analysis failed."

_CASE_ID_DIGITS = 12
_last_case_stamp = 0


def new_case_id() -> str:
    """
    CASE-<last 12 digits of the µs wall clock>.

    Stamps are forced strictly increasing within the process, so two reports
    built in the same microsecond still get distinct ids.
    """
    global _last_case_stamp
    stamp = max(time.time_ns() // 1_000, _last_case_stamp + 1)
    _last_case_stamp = stamp
    return f"CASE-{stamp % 10**_CASE_ID_DIGITS:0{_CASE_ID_DIGITS}d}"


# ── Parsing ───────────────────────────────────────────────────────────────────

# Marks text that holds no JSON at all, as opposed to a JSON null.
_NOT_JSON = object()


def _loads_json(text: str) -> Any:
    """json.loads the whole text, else the first {...} block in it; _NOT_JSON if neither parses."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        pass
    m = re.search(r"\{[\s\S]*\}", text)
    if m:
        try:
            return json.loads(m.group())
        except (json.JSONDecodeError, ValueError):
            pass
    return _NOT_JSON


def parse_raw_payload(raw: Union[str, Mapping[str, Any], None]) -> RawPayload:
    """
    Decode the classification service output.

    Empty output, output that is not JSON, and JSON whose top level isn't an
    object (null, arrays, numbers) all read as an empty payload, so the
    report falls back to its defaults.
    """
    if raw is None:
        return RawPayload()
    if isinstance(raw, Mapping):
        return RawPayload.model_validate(dict(raw))

    text = raw.strip()
    if not text:
        return RawPayload()

    data = _loads_json(text)
    if data is _NOT_JSON:
        logger.warning("Classification output is not valid JSON, treating as empty payload")
        return RawPayload()
    if not isinstance(data, dict):
        logger.warning("Classification output is a JSON %s, not an object; treating as empty payload",
                       type(data).__name__)
        return RawPayload()
    return RawPayload.model_validate(data)


# ── Normalisation ─────────────────────────────────────────────────────────────

def computed_metadata(file: SelectedFile) -> dict[str, str]:
    return {
        "originalSize": f"{file.size_mb} MB",
        "mimeType": file.content_type,
    }


def normalize(
    raw_payload: RawPayload,
    file: SelectedFile,
    media_kind: MediaKind,
    file_hash: str,
) -> ForensicReport:
    """Build a fully populated report; never mutates its inputs."""
    p = raw_payload
    return ForensicReport(
        id=new_case_id(),
        file_name=file.name,
        file_type=media_kind,
        timestamp=datetime.now(timezone.utc).isoformat(),
        file_hash=file_hash,
        authenticity_score=p.authenticity_score if p.authenticity_score is not None else 0,
        is_manipulated=bool(p.is_manipulated),
        manipulation_type=tuple(p.manipulation_type or ()),
        ensemble_data=tuple(p.ensemble_data or ()),
        semantic_mismatch_detected=bool(p.semantic_mismatch_detected),
        semantic_analysis_text=p.semantic_analysis_text or "",
        reasoning=p.reasoning or REASONING_SENTINEL,
        suspicious_regions=tuple(p.suspicious_regions or ()),
        metadata={**(p.metadata or {}), **computed_metadata(file)},
    )
