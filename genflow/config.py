# genflow/config.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT = Path(__file__).resolve().parents[1]

# Substrings (case-insensitive) that mark a provider rejection as content moderation.
# Providers reword these from time to time; override per provider with
# MODERATION_SIGNATURES='{"replicate": ["..."]}'.
DEFAULT_MODERATION_SIGNATURES: Dict[str, List[str]] = {
    "*": [
        "flagged by safety filters",
        "content moderation",
        "safety system",
        "content_policy_violation",
    ],
    "openai": [
        "moderation_blocked",
        "rejected by the safety system",
    ],
    "replicate": [
        "400 Image generation failed",
        "violate Google's Responsible AI practices",
        "sensitive words",
    ],
    "fal": [
        "safety",
        "content",
    ],
}

# Quota / capacity failures: never retried in place, they trigger the alt-text fallback.
DEFAULT_QUOTA_SIGNATURES: List[str] = [
    "exceeded your current quota",
    "check your plan and billing",
    "request limit",
    "quota",
    "e001",
]


class Settings(BaseSettings):
    # ---- provider selection & keys ----
    GENFLOW_PROVIDER: str = ""  # empty -> first provider with a key
    OPENAI_API_KEY: str = ""
    REPLICATE_API_TOKEN: str = ""
    FAL_KEY: str = ""

    # ---- generation defaults ----
    IMAGE_QUALITY: str = Field("medium", pattern="^(low|medium|high)$")
    DEFAULT_ASPECT_RATIO: str = "1:1"
    PROVIDER_MODELS: Dict[str, str] = Field(default_factory=dict)  # provider_id -> model override

    # ---- retry / poll policy (image path) ----
    RETRY_MAX_ATTEMPTS: int = Field(15, ge=1)
    RETRY_INITIAL_DELAY: float = Field(3.0, ge=0)
    RETRY_MULTIPLIER: float = Field(1.5, ge=1.0)
    RETRY_MAX_DELAY: float = Field(20.0, ge=0)

    # ---- alt text (create + five 1s polls) ----
    ALT_TEXT_MAX_ATTEMPTS: int = Field(6, ge=1)
    ALT_TEXT_POLL_DELAY: float = Field(1.0, ge=0)
    ALT_TEXT_OPENAI_MODEL: str = "gpt-5.2"
    ALT_TEXT_REPLICATE_MODEL: str = "google/gemini-3-pro"
    ALT_TEXT_REPLICATE_FALLBACK_MODEL: str = "openai/gpt-5-mini"

    # Optional wall-clock budget for one orchestration call (seconds).
    REQUEST_DEADLINE_SECS: Optional[float] = Field(default=None, gt=0)

    # ---- error classification data ----
    MODERATION_SIGNATURES: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_MODERATION_SIGNATURES.items()}
    )
    QUOTA_SIGNATURES: List[str] = Field(default_factory=lambda: list(DEFAULT_QUOTA_SIGNATURES))

    # ---- storage / logging ----
    OUTPUTS_DIR: str = str((ROOT / ".genflow" / "outputs").resolve())
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---- derived helpers ----
    def moderation_signatures_for(self, provider_id: str) -> List[str]:
        """Shared signatures plus the provider's own list."""
        shared = self.MODERATION_SIGNATURES.get("*", [])
        own = self.MODERATION_SIGNATURES.get(provider_id, [])
        return [*shared, *own]

    @property
    def outputs_dir(self) -> Path:
        return Path(self.OUTPUTS_DIR).resolve()

    @model_validator(mode="after")
    def _check_backoff_bounds(self):
        if self.RETRY_INITIAL_DELAY > self.RETRY_MAX_DELAY:
            raise ValueError("RETRY_INITIAL_DELAY cannot exceed RETRY_MAX_DELAY")
        return self
