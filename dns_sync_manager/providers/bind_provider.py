"""
BIND DNS provider implementation.

This module reads zones with AXFR and writes records with RFC 2136 dynamic
updates using the dnspython library. dnspython calls block, so each one runs
in a worker thread.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.tsig
import dns.tsigkeyring
import dns.update
import dns.xfr
import dns.zone

from .base_provider import DNSProvider
from ..core.errors import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRequestError,
    ProviderUnavailableError,
)
from ..core.models import ProviderConfig, Record, RecordType, VendorType
from ..core.normalizer import normalize_records
from ..utils.validators import fqdn_key

logger = logging.getLogger(__name__)

_AUTH_RCODES = {dns.rcode.REFUSED, dns.rcode.NOTAUTH}

# Raised while building an update from record text that the zone cannot hold.
_BAD_REQUEST_ERRORS = (
    dns.exception.SyntaxError,
    dns.name.NameTooLong,
    dns.rdatatype.UnknownRdatatype,
    ValueError,
)


def parse_bind_key_file(key_content: str, key_name: str) -> Optional[str]:
    """Parse BIND key file format to extract the secret for a specific key."""
    key_pattern = rf'key\s+"?{re.escape(key_name)}"?\s*{{(.*?)}}'
    match = re.search(key_pattern, key_content, re.DOTALL)
    if match:
        secret_match = re.search(r'secret\s+"([^"]+)"', match.group(1))
        if secret_match:
            return secret_match.group(1)
    return None


class BINDProvider(DNSProvider):
    """BIND DNS provider implementation using dnspython library."""

    def __init__(self, timeout: float = 30.0):
        """Initialize BIND provider with a per-query timeout."""
        self.timeout = timeout
        self._keyrings: Dict[str, Optional[Dict]] = {}

    def _server(self, config: ProviderConfig):
        credentials = config.credentials
        nameserver = credentials.get("nameserver")
        if not nameserver:
            raise ConfigurationError(f"BIND provider {config.name} has no nameserver")
        return nameserver, int(credentials.get("port", 53))

    def _keyring(self, config: ProviderConfig) -> Optional[Dict]:
        """Build (and cache) the TSIG keyring for a provider, if configured."""
        if config.id in self._keyrings:
            return self._keyrings[config.id]

        credentials = config.credentials
        key_name = credentials.get("key_name")
        secret = credentials.get("key_secret")
        key_file = credentials.get("key_file")

        keyring = None
        if key_name and not secret and key_file:
            try:
                with open(key_file, "r") as f:
                    secret = parse_bind_key_file(f.read(), key_name)
            except OSError as e:
                raise ConfigurationError(f"Cannot read TSIG key file {key_file}: {e}")
            if not secret:
                raise ConfigurationError(
                    f"Could not extract secret for key '{key_name}' from {key_file}"
                )
        if key_name and secret:
            try:
                keyring = dns.tsigkeyring.from_text({key_name: secret})
            except (ValueError, dns.exception.DNSException) as e:
                raise ConfigurationError(f"Invalid TSIG key '{key_name}' for {config.name}: {e}")
            logger.info(f"TSIG key '{key_name}' loaded for {config.name}")

        self._keyrings[config.id] = keyring
        return keyring

    def _zones(self, config: ProviderConfig) -> List[str]:
        """Zones come from credentials, or the exact include filters."""
        zones = config.credentials.get("zones")
        if isinstance(zones, str):
            zones = [zones]
        if not zones:
            zones = [
                rule.domain_pattern
                for rule in config.include_filters
                if not rule.domain_pattern.startswith("*")
            ]
        if not zones:
            raise ConfigurationError(
                f"BIND provider {config.name} needs 'zones' or exact domain filters"
            )
        return [fqdn_key(zone) for zone in zones]

    async def fetch_records(self, config: ProviderConfig) -> List[Record]:
        """Get all supported records of every configured zone via AXFR."""
        records = []
        for zone in self._zones(config):
            raw_records = await asyncio.to_thread(self._transfer_zone, config, zone)
            records.extend(normalize_records(raw_records, VendorType.BIND, zone))
        logger.info(f"Retrieved {len(records)} records from BIND for {config.name}")
        return records

    def _transfer_zone(self, config: ProviderConfig, zone: str) -> List[Dict]:
        nameserver, port = self._server(config)
        try:
            zone_obj = dns.zone.from_xfr(
                dns.query.xfr(
                    nameserver,
                    zone,
                    port=port,
                    keyring=self._keyring(config),
                    timeout=self.timeout,
                    lifetime=self.timeout,
                )
            )
        except (dns.query.TransferError, dns.xfr.TransferError) as e:
            if e.rcode in _AUTH_RCODES:
                raise ProviderAuthError(f"Zone transfer of {zone} refused: {e}", config.name)
            raise ProviderError(f"Zone transfer of {zone} failed: {e}", config.name)
        except (dns.tsig.PeerError, dns.tsig.BadSignature) as e:
            raise ProviderAuthError(f"TSIG rejected for {zone}: {e}", config.name)
        except (dns.exception.Timeout, OSError) as e:
            raise ProviderUnavailableError(f"{nameserver}:{port} unreachable: {e}", config.name)
        except dns.exception.DNSException as e:
            raise ProviderError(f"Zone transfer of {zone} failed: {e}", config.name)

        raw_records = []
        for name, node in zone_obj.nodes.items():
            fqdn = name.derelativize(zone_obj.origin).to_text()
            for rdataset in node.rdatasets:
                type_text = dns.rdatatype.to_text(rdataset.rdtype)
                if type_text not in RecordType.__members__:
                    continue
                for rdata in rdataset:
                    content = rdata.to_text(origin=zone_obj.origin, relativize=False)
                    raw_records.append(
                        {
                            "id": f"{type_text}:{fqdn}:{content}",
                            "type": type_text,
                            "name": fqdn,
                            "content": content,
                            "ttl": rdataset.ttl,
                            "zone_name": zone,
                        }
                    )
        return raw_records

    async def create_record(self, config: ProviderConfig, record: Record) -> None:
        """Add one value to the record's RRset."""
        await asyncio.to_thread(self._send_update, config, record, "add")

    async def update_record(self, config: ProviderConfig, record: Record) -> None:
        """Replace the whole RRset with the record's single value."""
        await asyncio.to_thread(self._send_update, config, record, "replace")

    async def delete_record(self, config: ProviderConfig, record: Record) -> None:
        """Remove the record's value from its RRset."""
        await asyncio.to_thread(self._send_update, config, record, "delete")

    def _send_update(self, config: ProviderConfig, record: Record, action: str) -> None:
        nameserver, port = self._server(config)
        try:
            update = self._create_update_message(config, record, action)
        except _BAD_REQUEST_ERRORS as e:
            raise ProviderRequestError(
                f"Cannot {action} {record.type.value} {record.name} -> {record.content}: {e}",
                config.name,
            )
        try:
            response = dns.query.tcp(update, nameserver, port=port, timeout=self.timeout)
        except (dns.exception.Timeout, OSError) as e:
            raise ProviderUnavailableError(f"{nameserver}:{port} unreachable: {e}", config.name)
        except (dns.tsig.PeerError, dns.tsig.BadSignature) as e:
            raise ProviderAuthError(f"TSIG rejected: {e}", config.name)
        except dns.exception.DNSException as e:
            raise ProviderError(f"DNS update failed: {e}", config.name)

        if response.rcode() != dns.rcode.NOERROR:
            self._handle_dns_error(config, response, action)
        logger.debug(f"BIND {action} {record.type.value} {record.name} -> {record.content}")

    def _create_update_message(
        self, config: ProviderConfig, record: Record, action: str
    ) -> dns.update.Update:
        """Create a DNS update message."""
        update = dns.update.Update(record.zone_name, keyring=self._keyring(config))

        name = dns.name.from_text(record.name)
        rdtype = dns.rdatatype.from_text(record.type.value)

        if action == "add":
            update.add(name, record.ttl, rdtype, record.content)
        elif action == "delete":
            update.delete(name, rdtype, record.content)
        elif action == "replace":
            update.replace(name, record.ttl, rdtype, record.content)
        else:
            raise ValueError(f"Unknown update action: {action}")

        return update

    def _handle_dns_error(self, config: ProviderConfig, response: dns.message.Message, operation: str) -> None:
        """Translate a failed update response into a provider error."""
        rcode = response.rcode()
        error_message = f"DNS update failed with response code: {dns.rcode.to_text(rcode)}"
        logger.error(error_message)
        if rcode in _AUTH_RCODES:
            raise ProviderAuthError(f"Failed to {operation} the record: {error_message}", config.name)
        raise ProviderError(f"Failed to {operation} the record: {error_message}", config.name)
