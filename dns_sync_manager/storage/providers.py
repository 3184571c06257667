"""
Provider repository - Provider configs in the Config Store

Handles the configuration boundary for providers: raw stored dictionaries
are validated and converted to ProviderConfig here, and nowhere else.
"""

import logging
import uuid
from typing import Dict, List, Optional

from ..core.errors import ConfigurationError
from ..core.filters import parse_filter_rules
from ..core.models import ProviderConfig, Role, VendorType
from .config_store import PROVIDERS_KEY, ConfigStore

logger = logging.getLogger(__name__)

# Credential keys older configurations kept at the top level.
_LEGACY_CREDENTIAL_KEYS = ("apiKey", "secretKey")

# Spellings accepted for the same stored field.
_KEY_ALIASES = (
    ("type", "vendorType", "vendor_type"),
    ("domains", "include", "includeFilters"),
    ("excludeDomains", "exclude_domains", "exclude", "excludeFilters"),
    ("sourceProviderIds", "source_provider_ids"),
)

_VENDOR_LABELS = {
    VendorType.CLOUDFLARE: "Cloudflare",
    VendorType.ALIYUN: "Aliyun",
    VendorType.DNSPOD: "DNSPod",
    VendorType.GODADDY: "GoDaddy",
    VendorType.NAMECHEAP: "Namecheap",
    VendorType.HUAWEICLOUD: "Huawei Cloud",
    VendorType.CUSTOM: "Custom",
    VendorType.BIND: "BIND (RFC 2136)",
    VendorType.MEMORY: "In-memory",
}


def supported_provider_types() -> List[Dict[str, str]]:
    """List vendor types with display names."""
    return [{"id": vendor.value, "name": label} for vendor, label in _VENDOR_LABELS.items()]


def generate_provider_id() -> str:
    return uuid.uuid4().hex[:16]


def _pick(data: Dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def provider_from_dict(data: Dict, strict: bool = True) -> ProviderConfig:
    """
    Validate a stored provider mapping and build a ProviderConfig.

    Both the stored camelCase keys and snake_case keys from YAML
    configuration files are accepted. With strict=False a target whose
    source list is empty or only names itself is still loaded, so that one
    stale entry does not hide the other providers; the orchestrator skips it.

    Raises:
        ConfigurationError: if the mapping does not describe a valid provider
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Provider entry must be a mapping, got {data!r}")

    provider_id = _pick(data, "id")
    if not provider_id:
        raise ConfigurationError("Provider entry has no id")
    provider_id = str(provider_id)

    name = _pick(data, "name")
    if not name:
        raise ConfigurationError(f"Provider {provider_id} has no name")

    try:
        vendor_type = VendorType(str(_pick(data, *_KEY_ALIASES[0], default="")).lower())
    except ValueError:
        raise ConfigurationError(f"Provider {name} has unknown type {data.get('type')!r}")

    try:
        role = Role(str(_pick(data, "role", default="")).lower())
    except ValueError:
        raise ConfigurationError(f"Provider {name} has unknown role {data.get('role')!r}")

    credentials = dict(_pick(data, "credentials", default={}) or {})
    for key in _LEGACY_CREDENTIAL_KEYS:
        if data.get(key) and key not in credentials:
            credentials[key] = data[key]

    source_ids = [str(s) for s in _pick(data, *_KEY_ALIASES[3], default=[]) or []]

    config = ProviderConfig(
        id=provider_id,
        name=str(name),
        vendor_type=vendor_type,
        role=role,
        credentials=credentials,
        include_filters=parse_filter_rules(_pick(data, *_KEY_ALIASES[1])),
        exclude_filters=parse_filter_rules(_pick(data, *_KEY_ALIASES[2])),
        source_provider_ids=source_ids if role == Role.TARGET else [],
    )

    if strict and config.is_target:
        if not config.source_provider_ids:
            raise ConfigurationError(f"Target provider {config.name} has no source providers")
        if config.source_provider_ids == [config.id]:
            raise ConfigurationError(f"Target provider {config.name} lists itself as its only source")

    return config


def validate_providers(providers: List[ProviderConfig]) -> None:
    """Check that provider ids and names are unique."""
    seen_ids = set()
    seen_names = set()
    for provider in providers:
        if provider.id in seen_ids:
            raise ConfigurationError(f"Duplicate provider id: {provider.id}")
        if provider.name in seen_names:
            raise ConfigurationError(f"Duplicate provider name: {provider.name}")
        seen_ids.add(provider.id)
        seen_names.add(provider.name)


class ProviderRepository:
    """CRUD for provider configurations stored under one Config Store key."""

    def __init__(self, store: ConfigStore):
        self.store = store

    def _raw(self) -> List[Dict]:
        return self.store.get(PROVIDERS_KEY, []) or []

    def list_providers(self) -> List[ProviderConfig]:
        """Return all providers, validated."""
        providers = [provider_from_dict(item, strict=False) for item in self._raw()]
        validate_providers(providers)
        return providers

    def get_provider(self, provider_id: str) -> Optional[ProviderConfig]:
        for item in self._raw():
            if str(item.get("id")) == provider_id:
                return provider_from_dict(item, strict=False)
        return None

    def get_provider_public(self, provider_id: str) -> Optional[Dict]:
        """Return a provider without its credentials."""
        provider = self.get_provider(provider_id)
        if provider is None:
            return None
        return provider.to_dict(include_credentials=False)

    def list_providers_public(self) -> List[Dict]:
        return [p.to_dict(include_credentials=False) for p in self.list_providers()]

    def save_provider(self, data: Dict) -> ProviderConfig:
        """
        Create or update a provider.

        A mapping without an id creates a new provider. When editing, empty
        credential values keep the stored ones.
        """
        data = dict(data)
        raw = self._raw()

        existing_index = None
        if data.get("id"):
            for index, item in enumerate(raw):
                if str(item.get("id")) == str(data["id"]):
                    existing_index = index
                    break
        else:
            data["id"] = generate_provider_id()

        if existing_index is not None:
            stored = raw[existing_index]
            stored_credentials = dict(stored.get("credentials") or {})
            for key in _LEGACY_CREDENTIAL_KEYS:
                if stored.get(key) and key not in stored_credentials:
                    stored_credentials[key] = stored[key]
            new_credentials = {k: v for k, v in (data.get("credentials") or {}).items() if v}
            stored_credentials.update(new_credentials)
            data["credentials"] = stored_credentials
            merged = dict(stored)
            for aliases in _KEY_ALIASES:
                if any(key in data for key in aliases):
                    for key in aliases:
                        merged.pop(key, None)
            merged.update(data)
            data = merged

        provider = provider_from_dict(data)
        stored_form = provider.to_dict()

        if existing_index is not None:
            raw[existing_index] = stored_form
        else:
            raw.append(stored_form)

        validate_providers([provider_from_dict(item, strict=False) for item in raw])
        self.store.put(PROVIDERS_KEY, raw)
        logger.info(f"Saved provider {provider.name} ({provider.id})")
        return provider

    def delete_provider(self, provider_id: str) -> bool:
        """
        Delete a provider and prune it from every target's source list.

        Targets left without sources are kept but reported, since a target
        must have at least one source to be synced.
        """
        raw = self._raw()
        remaining = [item for item in raw if str(item.get("id")) != provider_id]
        if len(remaining) == len(raw):
            logger.warning(f"Provider {provider_id} not found for deletion")
            return False

        for item in remaining:
            sources = item.get("sourceProviderIds") or []
            if provider_id in sources:
                item["sourceProviderIds"] = [s for s in sources if s != provider_id]
                if not item["sourceProviderIds"]:
                    logger.warning(
                        f"Target {item.get('name')} has no source providers left "
                        f"after deleting {provider_id}"
                    )

        self.store.put(PROVIDERS_KEY, remaining)
        logger.info(f"Deleted provider {provider_id}")
        return True
