# genflow/context.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from genflow.assets import AssetStore, LocalAssetStore
from genflow.config import Settings
from genflow.metrics import Metrics
from genflow.orchestrator import ClockFn, SleepFn
from genflow.providers import ProviderRegistry, build_registry
from genflow.settings_store import EnvSettingsStore
from genflow.transport import HttpTransport


@dataclass
class GenerationContext:
    """Everything a generation call needs, passed in explicitly."""

    settings: Settings
    registry: ProviderRegistry
    transport: HttpTransport
    store: EnvSettingsStore
    assets: AssetStore
    metrics: Metrics = field(default_factory=Metrics)
    sleep: SleepFn = time.sleep
    clock: ClockFn = time.monotonic


def build_context(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[HttpTransport] = None,
    registry: Optional[ProviderRegistry] = None,
    assets: Optional[AssetStore] = None,
    sleep: SleepFn = time.sleep,
    clock: ClockFn = time.monotonic,
) -> GenerationContext:
    settings = settings or Settings()
    registry = registry or build_registry()
    transport = transport or HttpTransport()
    return GenerationContext(
        settings=settings,
        registry=registry,
        transport=transport,
        store=EnvSettingsStore(settings, registry),
        assets=assets or LocalAssetStore(settings.outputs_dir, transport),
        sleep=sleep,
        clock=clock,
    )
