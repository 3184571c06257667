"""
Adapter registry - Select a provider adapter by vendor type

The orchestrator receives a registry instead of constructing adapters
itself, so tests can register in-memory adapters for any vendor.
"""

import logging
from typing import Dict, Optional, Union

from .base_provider import DNSProvider
from .bind_provider import BINDProvider
from .memory_provider import MemoryDNSProvider
from ..core.errors import UnsupportedProviderError
from ..core.models import ProviderConfig, VendorType

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Maps each VendorType to one adapter instance."""

    def __init__(self, adapters: Optional[Dict[VendorType, DNSProvider]] = None):
        """Initialize the registry with an optional vendor -> adapter mapping."""
        self._adapters: Dict[VendorType, DNSProvider] = {}
        for vendor, adapter in (adapters or {}).items():
            self.register(vendor, adapter)

    def register(self, vendor: Union[VendorType, str], adapter: DNSProvider) -> None:
        vendor = VendorType(vendor)
        self._adapters[vendor] = adapter
        logger.debug(f"Registered {type(adapter).__name__} for {vendor.value}")

    def get(self, vendor: Union[VendorType, str]) -> DNSProvider:
        """Get the adapter for a vendor type."""
        try:
            vendor = VendorType(vendor)
        except ValueError:
            raise UnsupportedProviderError(f"Unknown DNS provider type: {vendor}")

        adapter = self._adapters.get(vendor)
        if adapter is None:
            raise UnsupportedProviderError(
                f"No adapter registered for DNS provider type: {vendor.value}"
            )
        return adapter

    def for_provider(self, config: ProviderConfig) -> DNSProvider:
        try:
            return self.get(config.vendor_type)
        except UnsupportedProviderError as e:
            e.provider = config.name
            raise

    def __contains__(self, vendor) -> bool:
        try:
            return VendorType(vendor) in self._adapters
        except ValueError:
            return False


def default_registry(bind_timeout: float = 30.0) -> AdapterRegistry:
    """Registry with the adapters that ship with this package."""
    return AdapterRegistry(
        {
            VendorType.BIND: BINDProvider(timeout=bind_timeout),
            VendorType.MEMORY: MemoryDNSProvider(),
        }
    )
