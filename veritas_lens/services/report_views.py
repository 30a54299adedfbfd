"""
report_views.py — Read-only projections of a ForensicReport for the dashboard tabs.

Thresholds mirror the overview gauge: > 80 is HIGH authenticity,
> 50 MEDIUM, anything else LOW.
"""

from veritas_lens.models.forensic import AuthenticityBand, ForensicReport, ReportSummary

_BANDS: list[tuple[float, AuthenticityBand]] = [
    (80, "HIGH"),
    (50, "MEDIUM"),
]


def authenticity_band(score: float) -> AuthenticityBand:
    for threshold, band in _BANDS:
        if score > threshold:
            return band
    return "LOW"


def verdict_label(report: ForensicReport) -> str:
    return "MANIPULATION DETECTED" if report.is_manipulated else "LIKELY AUTHENTIC"


def summarize_report(report: ForensicReport) -> ReportSummary:
    return ReportSummary(
        case_id=report.id,
        verdict=verdict_label(report),
        authenticity_score=report.authenticity_score,
        authenticity_band=authenticity_band(report.authenticity_score),
        model_count=len(report.ensemble_data),
        region_count=len(report.suspicious_regions),
        manipulation_types=list(report.manipulation_type),
        semantic_mismatch_detected=report.semantic_mismatch_detected,
    )
