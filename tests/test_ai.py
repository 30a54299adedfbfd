"""
Unit tests for the AI module (GeminiClient, GeminiClassifier).

Mock-mode tests need no API key. The real-mode tests patch the SDK
boundary (google.generativeai) so no network call is made; they check
what we send and that SDK errors propagate.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from veritas_lens.ai import gemini_client as gemini_module
from veritas_lens.ai.forensic_classifier import GeminiClassifier
from veritas_lens.ai.gemini_client import GeminiClient
from veritas_lens.models.forensic import MediaKind
from veritas_lens.services.report_normalizer import parse_raw_payload

# ─── GeminiClient ─────────────────────────────────────────────────────────────


class TestGeminiClientMockMode:
    """GeminiClient in mock mode (default in tests)."""

    def setup_method(self):
        import veritas_lens.core.config as cfg

        self._original = cfg.settings.ai_mock_mode
        cfg.settings.ai_mock_mode = True
        self.client = GeminiClient()

    def teardown_method(self):
        import veritas_lens.core.config as cfg

        cfg.settings.ai_mock_mode = self._original

    async def test_generate_json_returns_string(self):
        result = await self.client.generate_json("prompt", b"bytes", "image/png")
        assert isinstance(result, str)

    async def test_unknown_key_returns_empty_object(self):
        result = await self.client.generate_json("p", b"", "image/png", response_key="nonexistent")
        assert json.loads(result) == {}

    @pytest.mark.parametrize("key", ["forensic_image", "forensic_video", "forensic_audio"])
    async def test_mock_payloads_are_valid_json_objects(self, key):
        result = await self.client.generate_json("p", b"", "image/png", response_key=key)
        data = json.loads(result)
        assert isinstance(data, dict)
        assert "authenticityScore" in data
        assert "reasoning" in data


class TestGeminiClientFallback:
    """Real mode requested without a key must degrade to mock mode."""

    def setup_method(self):
        import veritas_lens.core.config as cfg

        self._mode = cfg.settings.ai_mock_mode
        self._key = cfg.settings.gemini_api_key
        cfg.settings.ai_mock_mode = False
        cfg.settings.gemini_api_key = ""

    def teardown_method(self):
        import veritas_lens.core.config as cfg

        cfg.settings.ai_mock_mode = self._mode
        cfg.settings.gemini_api_key = self._key

    def test_falls_back_to_mock(self):
        assert GeminiClient().mock_mode is True


class TestGeminiClientRealMode:
    """Real mode with the SDK patched out."""

    def setup_method(self):
        import veritas_lens.core.config as cfg

        self._mode = cfg.settings.ai_mock_mode
        self._key = cfg.settings.gemini_api_key
        cfg.settings.ai_mock_mode = False
        cfg.settings.gemini_api_key = "test-key"

    def teardown_method(self):
        import veritas_lens.core.config as cfg

        cfg.settings.ai_mock_mode = self._mode
        cfg.settings.gemini_api_key = self._key

    async def test_sends_inline_media_and_json_mime(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(return_value=SimpleNamespace(text='{"reasoning": "ok"}'))
        with patch.object(gemini_module, "genai") as fake_genai:
            fake_genai.GenerativeModel.return_value = model
            client = GeminiClient()
            result = await client.generate_json(
                "analyse", b"\x89PNG", "image/png", system_instruction="be precise"
            )

        assert result == '{"reasoning": "ok"}'
        fake_genai.configure.assert_called_once_with(api_key="test-key")
        _, kwargs = fake_genai.GenerativeModel.call_args
        assert kwargs["system_instruction"] == "be precise"
        contents = model.generate_content_async.call_args.args[0]
        assert contents[0] == {"inline_data": {"mime_type": "image/png", "data": b"\x89PNG"}}
        assert contents[1] == {"text": "analyse"}
        config = model.generate_content_async.call_args.kwargs["generation_config"]
        assert config["response_mime_type"] == "application/json"

    async def test_sdk_errors_propagate(self):
        model = MagicMock()
        model.generate_content_async = AsyncMock(side_effect=RuntimeError("403 API key invalid"))
        with patch.object(gemini_module, "genai") as fake_genai:
            fake_genai.GenerativeModel.return_value = model
            client = GeminiClient()
            with pytest.raises(RuntimeError, match="API key invalid"):
                await client.generate_json("p", b"x", "image/png")

    async def test_oversized_media_rejected(self):
        with patch.object(gemini_module, "genai"):
            client = GeminiClient()
            with pytest.raises(ValueError, match="too large"):
                await client.generate_json("p", b"\x00" * (20 * 1024 * 1024 + 1), "video/mp4")


# ─── GeminiClassifier ─────────────────────────────────────────────────────────


class TestGeminiClassifier:

    @pytest.mark.parametrize(
        "kind, key",
        [
            (MediaKind.IMAGE, "forensic_image"),
            (MediaKind.VIDEO, "forensic_video"),
            (MediaKind.AUDIO, "forensic_audio"),
            (MediaKind.UNKNOWN, "default"),
        ],
    )
    async def test_response_key_per_media_kind(self, kind, key):
        client = MagicMock()
        client.generate_json = AsyncMock(return_value="{}")
        await GeminiClassifier(client).classify(b"x", kind, "", mime_type="image/png")
        assert client.generate_json.call_args.kwargs["response_key"] == key

    async def test_claim_is_embedded_in_system_prompt(self):
        client = MagicMock()
        client.generate_json = AsyncMock(return_value="{}")
        await GeminiClassifier(client).classify(b"x", MediaKind.IMAGE, "Taken in Tokyo last week")
        system = client.generate_json.call_args.kwargs["system_instruction"]
        assert '"Taken in Tokyo last week"' in system
        assert "IMAGE" in system

    async def test_missing_claim_differs_from_empty_claim(self):
        client = MagicMock()
        client.generate_json = AsyncMock(return_value="{}")
        classifier = GeminiClassifier(client)

        await classifier.classify(b"x", MediaKind.IMAGE, None)
        no_claim = client.generate_json.call_args.kwargs["system_instruction"]
        await classifier.classify(b"x", MediaKind.IMAGE, "")
        empty_claim = client.generate_json.call_args.kwargs["system_instruction"]

        assert "No context claim was supplied" in no_claim
        assert 'claim: "".' in empty_claim

    async def test_prompt_braces_are_unescaped(self):
        client = MagicMock()
        client.generate_json = AsyncMock(return_value="{}")
        await GeminiClassifier(client).classify(b"x", MediaKind.AUDIO, "")
        prompt = client.generate_json.call_args.args[0]
        assert "{{" not in prompt
        assert '"authenticityScore"' in prompt

    async def test_mock_client_output_normalises(self):
        import veritas_lens.core.config as cfg

        original = cfg.settings.ai_mock_mode
        cfg.settings.ai_mock_mode = True
        try:
            raw = await GeminiClassifier(GeminiClient()).classify(b"x", MediaKind.VIDEO, "")
        finally:
            cfg.settings.ai_mock_mode = original

        payload = parse_raw_payload(raw)
        assert payload.is_manipulated is True
        assert payload.suspicious_regions[0].label == "Blending boundary"
