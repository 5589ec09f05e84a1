# genflow/settings_store.py
from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from genflow.config import Settings
from genflow.models import Quality
from genflow.providers.base import ProviderRegistry


class SettingsStore(Protocol):
    def get_api_key(self, provider_id: str) -> str: ...

    def get_quality(self) -> Quality: ...

    def get_selected_model(self, provider_id: str) -> str: ...


class EnvSettingsStore:
    """SettingsStore over a Settings instance (environment / .env)."""

    # settings key -> Settings attribute
    KEY_FIELDS: Dict[str, str] = {
        "openai": "OPENAI_API_KEY",
        "replicate": "REPLICATE_API_TOKEN",
        "fal": "FAL_KEY",
    }

    def __init__(self, settings: Settings, registry: ProviderRegistry):
        self.settings = settings
        self.registry = registry

    def get_api_key(self, provider_id: str) -> str:
        if provider_id in self.registry:
            provider_id = self.registry.get_class(provider_id).settings_key()
        field = self.KEY_FIELDS.get(provider_id)
        return (getattr(self.settings, field, "") or "").strip() if field else ""

    def get_quality(self) -> Quality:
        return Quality(self.settings.IMAGE_QUALITY)

    def get_selected_model(self, provider_id: str) -> str:
        override = (self.settings.PROVIDER_MODELS.get(provider_id) or "").strip()
        if override:
            return override
        return self.registry.get_class(provider_id).model_for_quality(self.get_quality())

    def configured_providers(self, ids: Optional[List[str]] = None) -> List[str]:
        """Provider ids that are usable right now (key present, or no key needed)."""
        out = []
        for pid in ids if ids is not None else self.registry.available():
            cls = self.registry.get_class(pid)
            if not cls.capabilities.requires_api_key or self.get_api_key(pid):
                out.append(pid)
        return out

    def active_provider_id(self, image_ids: List[str]) -> Optional[str]:
        """
        Explicit GENFLOW_PROVIDER wins; otherwise openai when it has a key,
        otherwise the first image provider that has one.
        """
        explicit = (self.settings.GENFLOW_PROVIDER or "").strip().lower()
        if explicit:
            return explicit
        if self.get_api_key("openai"):
            return "openai"
        for pid in image_ids:
            cls = self.registry.get_class(pid)
            if cls.capabilities.requires_api_key and self.get_api_key(pid):
                return pid
        return None
