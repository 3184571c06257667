"""
DNS Sync Manager

Keeps DNS records consistent across several DNS provider accounts: records
are read from source providers, filtered and merged, and the differences are
applied to every target provider.
"""

__version__ = "1.0.0"
__author__ = "DNS Sync Manager Team"

from .core.models import Record, RecordType, SyncOptions
from .providers.registry import AdapterRegistry, default_registry
from .sync.orchestrator import SyncOrchestrator

__all__ = [
    "Record",
    "RecordType",
    "SyncOptions",
    "AdapterRegistry",
    "default_registry",
    "SyncOrchestrator",
]
