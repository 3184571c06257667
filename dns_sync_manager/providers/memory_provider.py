"""
In-memory DNS provider for testing and demonstration.

Records are kept per provider id in process memory. Failures and latency can
be injected to exercise the orchestrator's degradation paths.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Optional, Tuple, Union

from .base_provider import DNSProvider
from ..core.errors import ProviderError
from ..core.models import ProviderConfig, Record, VendorType
from ..core.normalizer import normalize_record, normalize_records

logger = logging.getLogger(__name__)


class MemoryDNSProvider(DNSProvider):
    """Mock DNS provider storing canonical record dictionaries in memory."""

    def __init__(self):
        """Initialize an empty in-memory provider."""
        self.zones: Dict[str, List[Dict]] = defaultdict(list)
        self.fetch_errors: Dict[str, Exception] = {}
        self.fetch_delays: Dict[str, float] = {}
        self.write_delays: Dict[str, float] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self._operation_errors: Dict[Tuple[str, str], List] = {}
        logger.info("Memory DNS provider initialized")

    def seed(
        self,
        provider_id: str,
        raw_records: List[Dict],
        vendor_type: Union[VendorType, str] = VendorType.MEMORY,
        zone_name: Optional[str] = None,
    ) -> None:
        """Load vendor-native records for a provider, normalizing them first."""
        vendor = VendorType(vendor_type)
        for raw in raw_records:
            record = normalize_record(raw, vendor, zone_name)
            if vendor == VendorType.MEMORY and not raw.get("id"):
                record = replace(record, id=uuid.uuid4().hex[:12])
            self.zones[provider_id].append(record.to_dict())

    def records(self, provider_id: str) -> List[Record]:
        """Canonical records currently held for a provider."""
        return normalize_records(self.zones.get(provider_id, []), VendorType.MEMORY)

    def fail_operation(
        self, action: str, name: str, error: Exception, times: Optional[int] = None
    ) -> None:
        """Make an operation on a record name raise error (times=None: always)."""
        self._operation_errors[(action, name.lower())] = [error, times]

    def _maybe_fail(self, action: str, record: Record) -> None:
        entry = self._operation_errors.get((action, record.name.lower()))
        if entry is None:
            return
        error, remaining = entry
        if remaining is not None:
            if remaining <= 0:
                return
            entry[1] = remaining - 1
        raise error

    async def _write_pause(self, record: Record) -> None:
        await asyncio.sleep(self.write_delays.get(record.name.lower(), 0))

    async def fetch_records(self, config: ProviderConfig) -> List[Record]:
        """Get all DNS records stored for the provider."""
        self.calls.append(("fetch", config.id, ""))
        delay = self.fetch_delays.get(config.id)
        if delay:
            await asyncio.sleep(delay)
        else:
            await asyncio.sleep(0)
        if config.id in self.fetch_errors:
            raise self.fetch_errors[config.id]

        records = self.records(config.id)
        logger.info(f"Memory: Retrieved {len(records)} records for {config.name}")
        return records

    async def create_record(self, config: ProviderConfig, record: Record) -> None:
        """Create a new DNS record."""
        self.calls.append(("create", config.id, record.name))
        await self._write_pause(record)
        self._maybe_fail("create", record)

        stored = record.to_dict()
        stored["id"] = uuid.uuid4().hex[:12]
        self.zones[config.id].append(stored)
        logger.debug(f"Memory: Created record {record.name} -> {record.content}")

    async def update_record(self, config: ProviderConfig, record: Record) -> None:
        """Update an existing DNS record by id."""
        self.calls.append(("update", config.id, record.name))
        await self._write_pause(record)
        self._maybe_fail("update", record)

        zone = self.zones.get(config.id, [])
        # Several stored records may share a vendor id; the diff targets the last one.
        for index in range(len(zone) - 1, -1, -1):
            existing = zone[index]
            if existing["id"] == record.id and existing["type"] == record.type.value:
                existing.update(
                    {"content": record.content, "ttl": record.ttl, "proxied": record.proxied}
                )
                logger.debug(f"Memory: Updated record {record.name} -> {record.content}")
                return

        raise ProviderError(f"Record {record.id} ({record.name}) not found for update", config.name)

    async def delete_record(self, config: ProviderConfig, record: Record) -> None:
        """Delete a DNS record by id."""
        self.calls.append(("delete", config.id, record.name))
        await self._write_pause(record)
        self._maybe_fail("delete", record)

        zone = self.zones.get(config.id, [])
        for index, existing in enumerate(zone):
            if existing["id"] == record.id and existing["content"] == record.content:
                del zone[index]
                logger.debug(f"Memory: Deleted record {record.name}")
                return

        raise ProviderError(f"Record {record.id} ({record.name}) not found for deletion", config.name)
