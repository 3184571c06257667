"""
Record Normalizer - Map vendor-native records onto the canonical Record

Each vendor names the same fields differently; some return relative host
names, some return trailing-dot FQDNs and some return the value as a list.
``normalize_record`` is a pure function and raises MalformedRecordError only
when the input cannot describe a record at all.
"""

import logging
from typing import Dict, Iterable, List, Optional, Union

from .errors import MalformedRecordError
from .models import Record, RecordType, VendorType
from ..utils.validators import strip_trailing_dot

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300

# vendor -> (id field, type field, name field, content field, ttl field, default ttl)
_FIELD_MAP = {
    VendorType.CLOUDFLARE: ("id", "type", "name", "content", "ttl", 1),
    VendorType.ALIYUN: ("RecordId", "Type", "RR", "Value", "TTL", 600),
    VendorType.DNSPOD: ("id", "type", "name", "value", "ttl", 600),
    VendorType.GODADDY: (None, "type", "name", "data", "ttl", 600),
    VendorType.NAMECHEAP: (None, "Type", "Host", "Value", "TTL", 1800),
    VendorType.HUAWEICLOUD: ("id", "type", "name", "records", "ttl", DEFAULT_TTL),
    VendorType.CUSTOM: ("id", "type", "name", "content", "ttl", DEFAULT_TTL),
    VendorType.BIND: ("id", "type", "name", "content", "ttl", DEFAULT_TTL),
    VendorType.MEMORY: ("id", "type", "name", "content", "ttl", DEFAULT_TTL),
}

# These vendors return host labels relative to the zone, "@" for the apex.
_RELATIVE_NAMES = {
    VendorType.ALIYUN,
    VendorType.DNSPOD,
    VendorType.GODADDY,
    VendorType.NAMECHEAP,
}

_ZONE_FIELDS = ("zone_name", "zoneName", "DomainName", "zone")


def normalize_record(
    raw: Dict, vendor_type: Union[VendorType, str], zone_name: Optional[str] = None
) -> Record:
    """
    Convert one vendor-native record into a canonical Record.

    Args:
        raw: Record as returned by the vendor API
        vendor_type: Vendor the record came from
        zone_name: Zone the record was fetched from, if the record lacks one

    Returns:
        Canonical Record

    Raises:
        MalformedRecordError: if required fields are missing or invalid
    """
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"Expected a mapping, got {type(raw).__name__}")

    try:
        vendor = VendorType(vendor_type)
    except ValueError:
        raise MalformedRecordError(f"Unknown vendor type: {vendor_type}", raw)

    id_field, type_field, name_field, content_field, ttl_field, default_ttl = _FIELD_MAP[vendor]

    zone = _zone_of(raw, zone_name)
    if not zone:
        raise MalformedRecordError("Record has no zone name", raw)

    record_type = _record_type(raw.get(type_field), raw)
    name = _absolute_name(raw.get(name_field), zone, vendor, raw)
    content = _first_value(raw.get(content_field), raw)
    ttl = _ttl(raw.get(ttl_field), default_ttl, raw)

    if id_field is None:
        record_id = f"{record_type.value}-{raw.get(name_field)}"
    else:
        record_id = raw.get(id_field)
        if record_id is None or record_id == "":
            record_id = f"{record_type.value}-{name}"

    if vendor == VendorType.CLOUDFLARE:
        proxied = bool(raw.get("proxied"))
    else:
        proxied = raw.get("proxied") if isinstance(raw.get("proxied"), bool) else None

    return Record(
        id=str(record_id),
        type=record_type,
        name=name,
        content=content,
        ttl=ttl,
        zone_name=zone,
        proxied=proxied,
    )


def normalize_records(
    raw_records: Iterable[Dict],
    vendor_type: Union[VendorType, str],
    zone_name: Optional[str] = None,
) -> List[Record]:
    """Normalize a batch of records, skipping malformed ones with a warning."""
    records = []
    for raw in raw_records:
        try:
            records.append(normalize_record(raw, vendor_type, zone_name))
        except MalformedRecordError as e:
            logger.warning(f"Skipping malformed {vendor_type} record: {e}")
    return records


def _zone_of(raw: Dict, zone_name: Optional[str]) -> Optional[str]:
    for key in _ZONE_FIELDS:
        value = raw.get(key)
        if value:
            return strip_trailing_dot(str(value))
    if zone_name:
        return strip_trailing_dot(zone_name)
    return None


def _record_type(value, raw: Dict) -> RecordType:
    if not value:
        raise MalformedRecordError("Record has no type", raw)
    try:
        return RecordType(str(value).upper())
    except ValueError:
        raise MalformedRecordError(f"Unsupported record type: {value}", raw)


def _absolute_name(value, zone: str, vendor: VendorType, raw: Dict) -> str:
    if value is None or str(value).strip() == "":
        raise MalformedRecordError("Record has no name", raw)

    name = strip_trailing_dot(str(value))
    if vendor not in _RELATIVE_NAMES:
        return name

    if name == "@":
        return zone
    if name.lower() == zone.lower() or name.lower().endswith("." + zone.lower()):
        return name
    return f"{name}.{zone}"


def _first_value(value, raw: Dict) -> str:
    # Only the first element of list-valued content survives.
    if isinstance(value, (list, tuple)):
        if not value:
            raise MalformedRecordError("Record has an empty value list", raw)
        value = value[0]
    if value is None:
        raise MalformedRecordError("Record has no content", raw)
    return str(value)


def _ttl(value, default_ttl: int, raw: Dict) -> int:
    if value is None or value == "":
        return default_ttl
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"Invalid TTL: {value!r}", raw)
