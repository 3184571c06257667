"""
DNS provider adapters.

This package contains the adapter interface, the BIND (dnspython) and
in-memory adapters, and the registry that selects one by vendor type.
"""

from .base_provider import DNSProvider, RetryPolicy
from .bind_provider import BINDProvider
from .memory_provider import MemoryDNSProvider
from .registry import AdapterRegistry, default_registry

__all__ = [
    "DNSProvider",
    "RetryPolicy",
    "BINDProvider",
    "MemoryDNSProvider",
    "AdapterRegistry",
    "default_registry",
]
