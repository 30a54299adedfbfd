"""
forensic_classifier.py — Classification service backed by Gemini.

The model plays a forensic meta-classifier: it looks at the media inline,
reports what a panel of specialised detectors would conclude, checks the
user's context claim against the content (cheapfake check) and returns a
single JSON document.

The output is untrusted. This module only transports it; parsing and
defaulting happen in services/report_normalizer.py.
"""

import logging
from typing import Any, Mapping, Optional, Protocol, Union

from veritas_lens.ai.gemini_client import GeminiClient, gemini_client
from veritas_lens.models.forensic import MediaKind

logger = logging.getLogger(__name__)

# Raw service output: response text, or an already decoded mapping.
RawResponse = Union[str, Mapping[str, Any]]


class Classifier(Protocol):
    async def classify(
        self,
        content: bytes,
        media_kind: MediaKind,
        context_claim: Optional[str],
        mime_type: str = "application/octet-stream",
    ) -> RawResponse:
        ...


# ── Prompts ───────────────────────────────────────────────────────────────────

_SYSTEM_PROMPT = """\
You are Veritas Lens, a forensic meta-model. You aggregate the outputs of these
specialised detectors:

1. FaceForensics++ (Xception) — face swaps and facial re-enactment.
2. DeepFake-o-Matic — generalised GAN and diffusion generator fingerprints.
3. MesoNet-4 — mesoscopic compression properties around manipulated faces.
4. EfficientNet-B7 — high-resolution texture anomalies.
5. Semantic-ViT — scene/context anomalies.

Task:
1. Examine the provided {media_kind} for manipulation.
2. Report the score each detector would give based on the visual/audio evidence.
3. {claim_instruction}
   Set semanticMismatchDetected when the content contradicts the claim.
4. Return one JSON object.

Rules:
- "reasoning" must be technical and specific.
- "authenticityScore" is 0-100 (100 = authentic).
- Suspicious region coordinates are percentages (0-100) of width/height,
  anchored at the top-left corner."""

_USER_PROMPT = """\
Run the full forensic suite on this file and answer with JSON only:
{{
  "authenticityScore": <number 0-100>,
  "isManipulated": <true|false>,
  "manipulationType": ["<type>", ...],
  "ensembleData": [
    {{"modelName": "<name>", "score": <0-100>, "confidence": "LOW|MEDIUM|HIGH", "focusArea": "<area>"}}
  ],
  "semanticMismatchDetected": <true|false>,
  "semanticAnalysisText": "<claim vs. content assessment>",
  "reasoning": "<technical explanation>",
  "suspiciousRegions": [
    {{"x": <0-100>, "y": <0-100>, "width": <0-100>, "height": <0-100>, "label": "<label>", "confidence": <0-100>}}
  ],
  "metadata": {{"estimatedDevice": "", "lightingCondition": "", "softwareSignature": "", "compressionLevel": ""}}
}}
Include one ensembleData entry for each of: FaceForensics++ (Xception),
DeepFake-o-Matic, MesoNet-4, EfficientNet-B7, Semantic-ViT."""

def _claim_instruction(context_claim: Optional[str]) -> str:
    # None = the caller never asked for a claim check; "" = the user left it blank.
    if context_claim is None:
        return "No context claim was supplied; report the semantic check as not performed."
    return f'Compare the content with the user\'s claim: "{context_claim}".'


_RESPONSE_KEYS = {
    MediaKind.IMAGE: "forensic_image",
    MediaKind.VIDEO: "forensic_video",
    MediaKind.AUDIO: "forensic_audio",
}


class GeminiClassifier:
    def __init__(self, client: GeminiClient = gemini_client) -> None:
        self.client = client

    async def classify(
        self,
        content: bytes,
        media_kind: MediaKind,
        context_claim: Optional[str],
        mime_type: str = "application/octet-stream",
    ) -> str:
        logger.info(
            "Classifying %s (mime=%s, size=%d bytes, claim=%s)",
            media_kind.value, mime_type, len(content),
            "none" if context_claim is None else f"{len(context_claim)} chars",
        )
        system_prompt = _SYSTEM_PROMPT.format(
            media_kind=media_kind.value,
            claim_instruction=_claim_instruction(context_claim),
        )
        return await self.client.generate_json(
            _USER_PROMPT.format(),
            content,
            mime_type,
            system_instruction=system_prompt,
            response_key=_RESPONSE_KEYS.get(media_kind, "default"),
        )


# Module-level singleton
gemini_classifier = GeminiClassifier()
