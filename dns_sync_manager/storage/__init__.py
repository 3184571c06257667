"""
Persistence for provider configurations, sync options and sync history.
"""

from .config_store import ConfigStore, MemoryConfigStore, YAMLConfigStore
from .history import SyncHistory, SyncSettings
from .providers import ProviderRepository, provider_from_dict, supported_provider_types

__all__ = [
    "ConfigStore",
    "MemoryConfigStore",
    "YAMLConfigStore",
    "SyncHistory",
    "SyncSettings",
    "ProviderRepository",
    "provider_from_dict",
    "supported_provider_types",
]
