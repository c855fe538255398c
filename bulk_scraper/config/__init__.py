"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    DiscoveryMode,
    DiscoverySettings,
    ExportSettings,
    FetchSettings,
    FieldSelectors,
    PipelineSettings,
    RunConfig,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DiscoveryMode",
    "DiscoverySettings",
    "ExportSettings",
    "FetchSettings",
    "FieldSelectors",
    "PipelineSettings",
    "RunConfig",
]
