"""
Smart OCR orchestration.

Ranks the registered providers for each call from routing options, static
baselines and recent success rates, then tries them one at a time until one
returns a result.
"""

import time
from dataclasses import dataclass, field, replace
from datetime import timedelta
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import structlog
import yaml

from ..config.settings import Settings, get_settings
from ..exceptions import ConfigurationError
from .metrics import DEFAULT_HISTORY_SIZE, MetricsStore
from .providers.base import OCRProvider
from .providers.gpt_vision import GPTVisionProvider
from .providers.mistral import MistralOCRProvider
from .providers.ocr_space import OCRSpaceProvider
from .types import (
    AllProvidersFailedError,
    CostTier,
    OCRProcessingOptions,
    OCRResult,
    SpeedPreference,
)

logger = structlog.get_logger(__name__)

# Short names callers may use for preferred_service
SERVICE_ALIASES = {
    "gpt": "gpt-vision",
    "openai": "gpt-vision",
    "mistral": "mistral-ocr",
    "ocrspace": "ocr-space",
}


@dataclass
class ProviderDescriptor:
    """A registered provider plus its static routing baselines."""
    provider: OCRProvider
    name: str
    priority: int
    cost_tier: CostTier
    average_accuracy: float
    average_response_time: float  # seconds

    @property
    def key(self) -> str:
        return self.provider.key


@dataclass
class OrchestratorConfig:
    """Configuration for provider ranking and health reporting."""

    ranking_window_hours: float = 24.0
    health_window_hours: float = 1.0
    tie_threshold: float = 0.1
    healthy_threshold: float = 0.5
    metrics_history_size: int = DEFAULT_HISTORY_SIZE

    # Per-provider baseline overrides keyed by provider key
    provider_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("tie_threshold", "healthy_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be between 0.0 and 1.0, got {value}")
        if self.metrics_history_size < 1:
            raise ConfigurationError(
                f"metrics_history_size must be positive, got {self.metrics_history_size}"
            )

    @property
    def ranking_window(self) -> timedelta:
        return timedelta(hours=self.ranking_window_hours)

    @property
    def health_window(self) -> timedelta:
        return timedelta(hours=self.health_window_hours)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "OrchestratorConfig":
        """Load configuration from YAML file."""
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}

            orchestrator_data = dict(data.get("orchestrator", {}))
            orchestrator_data["provider_overrides"] = data.get("providers", {})

            return cls(**orchestrator_data)

        except Exception as e:
            logger.error("Error loading orchestrator config",
                         config_path=str(config_path), error=str(e))
            return cls()

    def apply_overrides(self, descriptors: List[ProviderDescriptor]) -> List[ProviderDescriptor]:
        """Return descriptors with YAML baseline overrides applied."""
        updated = []
        for descriptor in descriptors:
            overrides = dict(self.provider_overrides.get(descriptor.key) or {})
            if "cost_tier" in overrides:
                overrides["cost_tier"] = CostTier(overrides["cost_tier"])
            allowed = {k: v for k, v in overrides.items()
                       if k in ("name", "priority", "cost_tier",
                                "average_accuracy", "average_response_time")}
            updated.append(replace(descriptor, **allowed) if allowed else descriptor)
        return updated


def default_registry(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[ProviderDescriptor]:
    """Build the stock provider registry from settings."""
    settings = settings or get_settings()
    return [
        ProviderDescriptor(
            provider=GPTVisionProvider.from_settings(settings, client=client),
            name="GPT Vision",
            priority=1,
            cost_tier=CostTier.PREMIUM,
            average_accuracy=0.95,
            average_response_time=8.0,
        ),
        ProviderDescriptor(
            provider=MistralOCRProvider.from_settings(settings, client=client),
            name="Mistral OCR",
            priority=2,
            cost_tier=CostTier.STANDARD,
            average_accuracy=0.87,
            average_response_time=5.0,
        ),
        ProviderDescriptor(
            provider=OCRSpaceProvider.from_settings(settings, client=client),
            name="OCR.space",
            priority=3,
            cost_tier=CostTier.FREE,
            average_accuracy=0.82,
            average_response_time=7.0,
        ),
    ]


class SmartOCROrchestrator:
    """
    Routes an image through ranked OCR providers with fallback.

    Providers are tried strictly in sequence. The first success wins. Each
    attempt on an available provider is recorded in the metrics store,
    which feeds later default rankings.
    """

    def __init__(
        self,
        providers: List[ProviderDescriptor],
        metrics: Optional[MetricsStore] = None,
        config: Optional[OrchestratorConfig] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """
        Initialize orchestrator.

        Args:
            providers: Provider registry; keys must be unique
            metrics: Attempt log. A new store is created when omitted.
            config: Ranking and health configuration
            timer: Monotonic clock used to time provider calls
        """
        self.config = config or OrchestratorConfig()
        self.logger = logger.bind(component="SmartOCROrchestrator")

        keys = [d.key for d in providers]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate provider keys: {', '.join(duplicates)}")

        self.providers = self.config.apply_overrides(list(providers))
        self.metrics = metrics if metrics is not None else MetricsStore(
            max_size=self.config.metrics_history_size
        )
        self.timer = timer

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None,
                      client: Optional[httpx.AsyncClient] = None) -> "SmartOCROrchestrator":
        """Build an orchestrator with the stock registry and optional YAML config."""
        settings = settings or get_settings()
        if settings.orchestrator_config_path:
            config = OrchestratorConfig.from_yaml(settings.orchestrator_config_path)
        else:
            config = OrchestratorConfig(metrics_history_size=settings.metrics_history_size)
        return cls(default_registry(settings, client=client), config=config)

    def get_provider(self, key: str) -> Optional[ProviderDescriptor]:
        key = SERVICE_ALIASES.get(key, key)
        for descriptor in self.providers:
            if descriptor.key == key:
                return descriptor
        return None

    async def process_image(
        self, image_ref: str, options: Optional[OCRProcessingOptions] = None
    ) -> OCRResult:
        """
        Recognize an image with the best available provider.

        Args:
            image_ref: Local path or ``file://`` URI of the image
            options: Routing options

        Returns:
            Result stamped with the provider key and processing time

        Raises:
            AllProvidersFailedError: If every ranked provider failed or was unavailable
        """
        options = options or OCRProcessingOptions()
        ranked = self.rank_providers(options)
        self.logger.info("Processing image", image_ref=image_ref,
                         ranking=[d.key for d in ranked])

        failures: Dict[str, str] = {}
        last_error: Optional[str] = None

        for descriptor in ranked:
            if not await self._can_use(descriptor):
                failures[descriptor.key] = "unavailable"
                continue

            start_time = self.timer()
            try:
                result = await descriptor.provider.recognize_text(image_ref)
            except Exception as e:
                elapsed = self.timer() - start_time
                last_error = str(e) or type(e).__name__
                failures[descriptor.key] = last_error
                self.metrics.record_failure(descriptor.key, elapsed, last_error)
                self.logger.warning("OCR provider failed", provider=descriptor.key,
                                    error=last_error, error_type=type(e).__name__)
                continue

            elapsed = self.timer() - start_time
            result.provider = descriptor.key
            result.processing_time = elapsed
            self.metrics.record_success(
                descriptor.key,
                processing_time=elapsed,
                confidence=result.confidence,
                entries_extracted=len(result.parsed_entries or []),
            )
            self.logger.info("OCR provider succeeded", provider=descriptor.key,
                             processing_time=round(elapsed, 3),
                             confidence=result.confidence)
            return result

        message = f"All OCR services failed. Last error: {last_error or 'No OCR provider available'}"
        self.logger.error("All OCR providers failed", failures=failures)
        raise AllProvidersFailedError(message, failures=failures)

    def rank_providers(self, options: Optional[OCRProcessingOptions] = None) -> List[ProviderDescriptor]:
        """Order providers for one call. Computed fresh every time."""
        options = options or OCRProcessingOptions()
        candidates = list(self.providers)

        if options.max_cost_tier is not None:
            candidates = [d for d in candidates if d.cost_tier <= options.max_cost_tier]

        if options.speed_preference == SpeedPreference.SPEED:
            excluded = self._costliest_slowest()
            if len(candidates) > 1:
                candidates = [d for d in candidates if d is not excluded]
            return sorted(candidates, key=lambda d: d.average_response_time)

        if options.speed_preference == SpeedPreference.ACCURACY:
            return sorted(candidates, key=lambda d: (-d.average_accuracy, d.priority))

        if options.preferred_service:
            preferred = SERVICE_ALIASES.get(options.preferred_service, options.preferred_service)
            return sorted(candidates, key=lambda d: (d.key != preferred, d.priority))

        if options.prioritize_speed:
            return sorted(candidates, key=lambda d: d.average_response_time)

        if options.prioritize_accuracy:
            return sorted(candidates, key=lambda d: -d.average_accuracy)

        return self._rank_by_success_rate(candidates)

    def _costliest_slowest(self) -> Optional[ProviderDescriptor]:
        """The registry's most expensive provider, slowest first on a tier tie."""
        if not self.providers:
            return None
        return max(self.providers, key=lambda d: (d.cost_tier.rank, d.average_response_time))

    def _rank_by_success_rate(self, candidates: List[ProviderDescriptor]) -> List[ProviderDescriptor]:
        window = self.config.ranking_window
        rates = {}
        for descriptor in candidates:
            rate = self.metrics.success_rate(descriptor.key, window)
            rates[descriptor.key] = descriptor.average_accuracy if rate is None else rate

        def compare(a: ProviderDescriptor, b: ProviderDescriptor) -> int:
            diff = rates[b.key] - rates[a.key]
            if abs(diff) > self.config.tie_threshold:
                return 1 if diff > 0 else -1
            return a.priority - b.priority

        return sorted(candidates, key=cmp_to_key(compare))

    async def _can_use(self, descriptor: ProviderDescriptor) -> bool:
        provider = descriptor.provider
        try:
            if not provider.is_available():
                self.logger.debug("OCR provider not configured", provider=descriptor.key)
                return False
            await provider.initialize()
        except Exception as e:
            self.logger.warning("OCR provider unavailable", provider=descriptor.key, error=str(e))
            return False
        return True

    def get_performance_stats(self) -> Dict[str, Any]:
        """Totals and a per-provider breakdown over the ranking window."""
        recent = self.metrics.recent(self.config.ranking_window)
        if not recent:
            return {
                "total_processed": 0,
                "success_rate": 0.0,
                "average_processing_time": 0.0,
                "service_breakdown": {},
            }

        successes = [m for m in recent if m.success]
        breakdown = {}
        for descriptor in self.providers:
            attempts = [m for m in recent if m.provider == descriptor.key]
            if not attempts:
                continue
            wins = [m for m in attempts if m.success]
            breakdown[descriptor.key] = {
                "attempts": len(attempts),
                "successes": len(wins),
                "success_rate": len(wins) / len(attempts),
                "average_time": _mean([m.processing_time for m in wins]),
                "average_accuracy": _mean([m.confidence or 0.0 for m in wins]),
            }

        return {
            "total_processed": len(recent),
            "success_rate": len(successes) / len(recent),
            "average_processing_time": _mean([m.processing_time for m in successes]),
            "service_breakdown": breakdown,
        }

    async def get_service_health(self) -> Dict[str, Dict[str, Any]]:
        """Availability and recent success per provider over the health window."""
        window = self.config.health_window
        health = {}
        for descriptor in self.providers:
            rate = self.metrics.success_rate(descriptor.key, window)
            health[descriptor.key] = {
                "available": await self._can_use(descriptor),
                "healthy": rate is None or rate > self.config.healthy_threshold,
                "last_success": self.metrics.last_success(descriptor.key),
                "recent_success_rate": rate or 0.0,
            }
        return health

    async def initialize(self) -> None:
        """Initialize every provider; failures are logged, never raised."""
        for descriptor in self.providers:
            try:
                if descriptor.provider.is_available():
                    await descriptor.provider.initialize()
            except Exception as e:
                self.logger.warning("OCR provider initialization failed",
                                    provider=descriptor.key, error=str(e))

    async def cleanup(self) -> None:
        for descriptor in self.providers:
            try:
                await descriptor.provider.cleanup()
            except Exception as e:
                self.logger.warning("OCR provider cleanup failed",
                                    provider=descriptor.key, error=str(e))


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0
