"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. All secrets are injected via environment — never
hard-coded.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the analysis dashboard.
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── AI ────────────────────────────────────────────────────────
    # Get from https://aistudio.google.com/
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # When True, classification returns canned mock payloads.
    # Always True in tests; set False in production with a real key.
    ai_mock_mode: bool = True

    # ─── Pipeline ──────────────────────────────────────────────────
    # Length of each simulated model warm-up pause (two per run).
    model_warmup_delay_s: float = 0.6

    # ─── Uploads ───────────────────────────────────────────────────
    max_file_size_mb: int = 50
    analysis_rate_limit: str = "30/minute"

    # ─── Sessions ──────────────────────────────────────────────────
    # Idle sessions (and the file bytes they hold) are dropped after this.
    session_ttl_s: float = 3600.0
    # Oldest idle session is evicted once this many are open.
    max_sessions: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton: import this everywhere instead of instantiating Settings()
settings = Settings()
