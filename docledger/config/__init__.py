from .loader import load_config, merge_config
from .models import (
    AudienceSettings,
    AudiencesSettings,
    BundleSettings,
    LedgerConfig,
    LLMSettings,
    RetrySettings,
    StateSettings,
)

__all__ = [
    "AudienceSettings",
    "AudiencesSettings",
    "BundleSettings",
    "LLMSettings",
    "LedgerConfig",
    "RetrySettings",
    "StateSettings",
    "load_config",
    "merge_config",
]
