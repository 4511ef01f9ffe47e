"""
OCR Module

Provider adapters for cloud OCR services, a sliding-window rate limiter,
an attempt log and the orchestrator that ranks providers and falls back
between them.
"""

from .metrics import MetricsStore, OCRMetric
from .providers import (
    GPTVisionProvider,
    HTTPOCRProvider,
    MistralOCRProvider,
    OCRProvider,
    OCRSpaceProvider,
)
from .rate_limiter import RateLimiter
from .strategy import (
    OrchestratorConfig,
    ProviderDescriptor,
    SmartOCROrchestrator,
    default_registry,
)
from .types import (
    AllProvidersFailedError,
    CostTier,
    OCRBlock,
    OCRError,
    OCRLine,
    OCRProcessingOptions,
    OCRResult,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    SpeedPreference,
)

__all__ = [
    # Orchestration
    "SmartOCROrchestrator",
    "OrchestratorConfig",
    "ProviderDescriptor",
    "default_registry",
    "MetricsStore",
    "OCRMetric",
    "RateLimiter",
    # Providers
    "OCRProvider",
    "HTTPOCRProvider",
    "GPTVisionProvider",
    "MistralOCRProvider",
    "OCRSpaceProvider",
    # Data types
    "OCRResult",
    "OCRBlock",
    "OCRLine",
    "OCRProcessingOptions",
    "CostTier",
    "SpeedPreference",
    # Exceptions
    "OCRError",
    "ProviderError",
    "RateLimitError",
    "ProviderUnavailableError",
    "AllProvidersFailedError",
]
