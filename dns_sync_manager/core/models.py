"""
Data model - Canonical records, provider configuration and sync results

These types are shared by the normalizer, filters, diff engine and the sync
orchestrator. Stored shapes (``to_dict``/``from_dict``) use the camelCase
keys the persisted configuration has always used.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RecordType(str, Enum):
    """DNS record types handled by the sync engine."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    MX = "MX"
    TXT = "TXT"
    NS = "NS"
    PTR = "PTR"
    SRV = "SRV"
    CAA = "CAA"
    HTTPS = "HTTPS"
    SVCB = "SVCB"
    SOA = "SOA"


# Never deleted by a sync, even with delete_extra enabled.
PROTECTED_TYPES = frozenset({RecordType.NS, RecordType.SOA})


class VendorType(str, Enum):
    """Provider vendors understood by the normalizer and adapter registry."""

    CLOUDFLARE = "cloudflare"
    ALIYUN = "aliyun"
    DNSPOD = "dnspod"
    GODADDY = "godaddy"
    NAMECHEAP = "namecheap"
    HUAWEICLOUD = "huaweicloud"
    CUSTOM = "custom"
    BIND = "bind"
    MEMORY = "memory"


class Role(str, Enum):
    SOURCE = "source"
    TARGET = "target"


class TargetState(str, Enum):
    """Lifecycle of one target within a sync run."""

    PENDING = "pending"
    FETCHING_SOURCES = "fetching_sources"
    MERGING = "merging"
    DIFFING = "diffing"
    APPLYING = "applying"
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_ERRORS = "succeeded_with_errors"
    FAILED = "failed"


@dataclass(frozen=True)
class Record:
    """Canonical, vendor-independent DNS record."""

    id: str
    type: RecordType
    name: str
    content: str
    ttl: int
    zone_name: str
    proxied: Optional[bool] = None

    @property
    def identity(self) -> Tuple[str, str]:
        """Key used by the diff engine; content is deliberately not part of it."""
        return (self.type.value, self.name.lower())

    @property
    def dedup_key(self) -> str:
        """Key used when merging several sources."""
        return f"{self.name.lower()}|{self.type.value}|{self.content}"

    def same_values(self, other: "Record") -> bool:
        """Compare the fields a sync is allowed to change."""
        return (
            self.content == other.content
            and self.ttl == other.ttl
            and bool(self.proxied) == bool(other.proxied)
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "content": self.content,
            "ttl": self.ttl,
            "proxied": self.proxied,
            "zone_name": self.zone_name,
        }


@dataclass(frozen=True)
class FilterRule:
    """Domain pattern plus an optional record type whitelist (None = all types)."""

    domain_pattern: str
    record_types: Optional[frozenset] = None

    def to_dict(self) -> Dict:
        types = sorted(t.value for t in self.record_types) if self.record_types else None
        return {"domain": self.domain_pattern, "recordTypes": types}


@dataclass
class SyncOptions:
    overwrite_all: bool = True
    delete_extra: bool = False

    def to_dict(self) -> Dict:
        return {"overwriteAll": self.overwrite_all, "deleteExtra": self.delete_extra}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "SyncOptions":
        data = data or {}
        return cls(
            overwrite_all=bool(data.get("overwriteAll", True)),
            delete_extra=bool(data.get("deleteExtra", False)),
        )


@dataclass
class ProviderConfig:
    """A configured DNS provider account acting as a source or a target."""

    id: str
    name: str
    vendor_type: VendorType
    role: Role
    credentials: Dict = field(default_factory=dict)
    include_filters: List[FilterRule] = field(default_factory=list)
    exclude_filters: List[FilterRule] = field(default_factory=list)
    source_provider_ids: List[str] = field(default_factory=list)

    @property
    def is_target(self) -> bool:
        return self.role == Role.TARGET

    def to_dict(self, include_credentials: bool = True) -> Dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.vendor_type.value,
            "role": self.role.value,
            "domains": [rule.to_dict() for rule in self.include_filters],
            "excludeDomains": [rule.to_dict() for rule in self.exclude_filters],
            "sourceProviderIds": list(self.source_provider_ids),
        }
        if include_credentials:
            data["credentials"] = dict(self.credentials)
        return data


@dataclass
class FailedOperation:
    action: str
    record: Record
    reason: str

    def to_dict(self) -> Dict:
        return {"action": self.action, "record": self.record.to_dict(), "reason": self.reason}


@dataclass
class Actions:
    """Ordered output of the diff engine: updates, then creates, then deletes."""

    updates: List[Record] = field(default_factory=list)
    creates: List[Record] = field(default_factory=list)
    deletes: List[Record] = field(default_factory=list)
    no_changes: List[Record] = field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return len(self.updates) + len(self.creates) + len(self.deletes)

    def is_empty(self) -> bool:
        return self.total_changes == 0

    def ordered(self) -> List[Tuple[str, Record]]:
        """Flatten into (action, record) pairs in apply order."""
        return (
            [("update", r) for r in self.updates]
            + [("create", r) for r in self.creates]
            + [("delete", r) for r in self.deletes]
        )


@dataclass
class ApplyResult:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failed_operations: List[FailedOperation] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.created + self.updated + self.deleted

    def to_dict(self) -> Dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "failedOperations": [op.to_dict() for op in self.failed_operations],
        }


@dataclass(frozen=True)
class SyncHistoryEntry:
    """Immutable record of one target's outcome in one sync run."""

    timestamp: int
    source_provider_ids: Tuple[str, ...]
    source_names: Tuple[str, ...]
    target_provider_id: str
    target_name: str
    record_count: int
    success: bool
    status: str
    error: Optional[str] = None
    failed_operations: Tuple[Dict, ...] = ()
    created: int = 0
    updated: int = 0
    deleted: int = 0

    def to_dict(self) -> Dict:
        return {
            "timestamp": self.timestamp,
            "sourceProviderIds": list(self.source_provider_ids),
            "sourceNames": list(self.source_names),
            "targetProviderId": self.target_provider_id,
            "targetName": self.target_name,
            "recordCount": self.record_count,
            "success": self.success,
            "status": self.status,
            "error": self.error,
            "failedOperations": list(self.failed_operations),
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SyncHistoryEntry":
        source_names = data.get("sourceNames") or []
        if isinstance(source_names, str):
            source_names = [n.strip() for n in source_names.split(",") if n.strip()]
        success = bool(data.get("success", False))
        return cls(
            timestamp=int(data.get("timestamp", 0)),
            source_provider_ids=tuple(data.get("sourceProviderIds") or ()),
            source_names=tuple(source_names),
            target_provider_id=data.get("targetProviderId", ""),
            target_name=data.get("targetName", ""),
            record_count=int(data.get("recordCount", 0)),
            success=success,
            status=data.get("status")
            or (TargetState.SUCCEEDED.value if success else TargetState.FAILED.value),
            error=data.get("error"),
            failed_operations=tuple(data.get("failedOperations") or ()),
            created=int(data.get("created", 0)),
            updated=int(data.get("updated", 0)),
            deleted=int(data.get("deleted", 0)),
        )


@dataclass
class TargetOutcome:
    """Result of synchronizing a single target."""

    target_id: str
    target_name: str
    state: TargetState = TargetState.PENDING
    source_ids: List[str] = field(default_factory=list)
    source_names: List[str] = field(default_factory=list)
    record_count: int = 0
    result: ApplyResult = field(default_factory=ApplyResult)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state in (TargetState.SUCCEEDED, TargetState.SUCCEEDED_WITH_ERRORS)

    def to_dict(self) -> Dict:
        data = {
            "providerId": self.target_id,
            "targetName": self.target_name,
            "status": self.state.value,
            "sourceNames": ", ".join(self.source_names),
            "recordCount": self.record_count,
        }
        data.update(self.result.to_dict())
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SyncRunSummary:
    success: List[TargetOutcome] = field(default_factory=list)
    failed: List[TargetOutcome] = field(default_factory=list)

    def add(self, outcome: TargetOutcome) -> None:
        if outcome.succeeded:
            self.success.append(outcome)
        else:
            self.failed.append(outcome)

    def to_dict(self) -> Dict:
        return {
            "success": [o.to_dict() for o in self.success],
            "failed": [o.to_dict() for o in self.failed],
        }


def with_identity_of(desired: Record, existing: Record) -> Record:
    """Return desired values addressed at an existing record."""
    return replace(desired, id=existing.id, name=existing.name, zone_name=existing.zone_name)
