"""
GeminiClient — Async wrapper around Google Generative AI SDK.

Used by the classification service to run the forensic meta-classifier
over an uploaded file. One model (settings.gemini_model) is used for
every media kind; the media travels inline with the request.

Supports two runtime modes (set via AI_MOCK_MODE env var):
  - MOCK mode (default): returns deterministic canned JSON payloads.
    Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls.
    Requires GEMINI_API_KEY to be set.

Extension pattern: add new mock response keys to _MOCK_RESPONSES and
reference them via the response_key parameter.
"""

import logging
import os
from typing import Any, Optional

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai

from veritas_lens.core.config import settings

logger = logging.getLogger(__name__)

# Inline request ceiling for Gemini (~20 MB per request including prompt).
_MAX_INLINE_BYTES = 20 * 1024 * 1024


# Canned responses for mock mode.
# Keys map to response_key arguments in generate_json() calls.
_MOCK_RESPONSES: dict[str, str] = {
    "default": "{}",
    "forensic_image": (
        '{"authenticityScore": 91, "isManipulated": false, "manipulationType": [], '
        '"ensembleData": ['
        '{"modelName": "FaceForensics++ (Xception)", "score": 8, "confidence": "HIGH", "focusArea": "Facial Landmarks"}, '
        '{"modelName": "DeepFake-o-Matic", "score": 11, "confidence": "MEDIUM", "focusArea": "Generator Fingerprints"}, '
        '{"modelName": "MesoNet-4", "score": 6, "confidence": "MEDIUM", "focusArea": "Compression Mesoscopics"}, '
        '{"modelName": "EfficientNet-B7", "score": 9, "confidence": "HIGH", "focusArea": "Texture Anomalies"}, '
        '{"modelName": "Semantic-ViT", "score": 12, "confidence": "LOW", "focusArea": "Context Consistency"}'
        '], '
        '"semanticMismatchDetected": false, '
        '"semanticAnalysisText": "[MOCK] No claim conflicts with the visible scene.", '
        '"reasoning": "[MOCK] Sensor noise is spatially uniform and JPEG block boundaries align '
        'across the frame; no blending halos or GAN grid artefacts were found.", '
        '"suspiciousRegions": [], '
        '"metadata": {"estimatedDevice": "Smartphone (rear camera)", "lightingCondition": "Daylight", '
        '"softwareSignature": "None detected", "compressionLevel": "Medium"}}'
    ),
    "forensic_video": (
        '{"authenticityScore": 34, "isManipulated": true, "manipulationType": ["Face Swap"], '
        '"ensembleData": ['
        '{"modelName": "FaceForensics++ (Xception)", "score": 71, "confidence": "HIGH", "focusArea": "Facial Landmarks"}, '
        '{"modelName": "DeepFake-o-Matic", "score": 64, "confidence": "MEDIUM", "focusArea": "Temporal Flicker"}, '
        '{"modelName": "MesoNet-4", "score": 58, "confidence": "MEDIUM", "focusArea": "Compression Mesoscopics"}'
        '], '
        '"semanticMismatchDetected": false, "semanticAnalysisText": "[MOCK] Claim not contradicted.", '
        '"reasoning": "[MOCK] The jawline blending boundary drifts between consecutive frames while '
        'the background stays stable, consistent with a face-swap mask refresh.", '
        '"suspiciousRegions": [{"x": 38, "y": 22, "width": 24, "height": 30, '
        '"label": "Blending boundary", "confidence": 72}], '
        '"metadata": {"compressionLevel": "High"}}'
    ),
    "forensic_audio": (
        '{"authenticityScore": 77, "isManipulated": false, "manipulationType": [], '
        '"ensembleData": [{"modelName": "DeepFake-o-Matic", "score": 21, "confidence": "MEDIUM", '
        '"focusArea": "Spectral Envelope"}], '
        '"semanticMismatchDetected": false, "semanticAnalysisText": "", '
        '"reasoning": "[MOCK] Breath sounds and micro-pauses are irregular; no vocoder smoothing detected."}'
    ),
}


class GeminiClient:
    """
    Central Gemini interface for the classification service.

    Don't instantiate per-request; use the module-level `gemini_client`
    singleton.
    """

    def __init__(self) -> None:
        self.mock_mode = settings.ai_mock_mode
        self.model_name = settings.gemini_model

        if not self.mock_mode:
            if not settings.gemini_api_key:
                logger.warning(
                    "GEMINI_API_KEY not set — falling back to mock mode. "
                    "Set AI_MOCK_MODE=true to silence this warning."
                )
                self.mock_mode = True
            else:
                genai.configure(api_key=settings.gemini_api_key)
                self._genai = genai

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        else:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.model_name)

    async def generate_json(
        self,
        prompt: str,
        media: bytes,
        mime_type: str,
        system_instruction: Optional[str] = None,
        response_key: str = "default",
        **generation_kwargs: Any,
    ) -> str:
        """
        Multimodal call that asks Gemini for a JSON document.

        Args:
            prompt:             User-turn instruction sent after the media part.
            media:              Raw file bytes, sent inline.
            mime_type:          Declared MIME type of `media`.
            system_instruction: Optional system prompt for the model.
            response_key:       Mock response key (ignored in real mode).
            **generation_kwargs: Merged into the generation config.

        Returns:
            The model's response text (expected, not guaranteed, to be JSON).

        Raises:
            ValueError: media exceeds the inline request limit.
            Exception:  Propagates Gemini SDK errors in real mode.
        """
        if self.mock_mode:
            return _MOCK_RESPONSES.get(response_key, _MOCK_RESPONSES["default"])

        if len(media) > _MAX_INLINE_BYTES:
            raise ValueError(
                f"Media too large for inline analysis ({len(media)} bytes > {_MAX_INLINE_BYTES})"
            )

        try:
            gemini_model = self._genai.GenerativeModel(
                self.model_name, system_instruction=system_instruction
            )
            contents = [
                {"inline_data": {"mime_type": mime_type, "data": media}},
                {"text": prompt},
            ]
            response = await gemini_model.generate_content_async(
                contents,
                generation_config={"response_mime_type": "application/json", **generation_kwargs},
            )
            return response.text
        except Exception as exc:
            logger.error("Gemini API error (model=%s, mime=%s): %s", self.model_name, mime_type, exc)
            raise


# Module-level singleton, import and use this everywhere
gemini_client = GeminiClient()
