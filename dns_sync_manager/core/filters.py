"""
Domain/Type Filter - Include and exclude rules for records

A provider's ``domains`` setting has historically been stored in several
shapes. ``parse_filter_rules`` collapses all of them into FilterRule lists at
the configuration boundary; everything downstream only sees FilterRule.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .errors import ConfigurationError
from .models import FilterRule, Record, RecordType
from ..utils.validators import fqdn_key, validate_domain_pattern

logger = logging.getLogger(__name__)


def rule_matches(record: Record, rule: FilterRule) -> bool:
    """Check a single rule against a record."""
    if rule.record_types is not None and record.type not in rule.record_types:
        return False

    pattern = fqdn_key(rule.domain_pattern)
    if pattern == "*":
        return True

    name = fqdn_key(record.name)
    if pattern.startswith("*."):
        # Strict subdomain only; the bare suffix itself does not match.
        return name.endswith("." + pattern[2:])

    return name == pattern or fqdn_key(record.zone_name) == pattern


def matches(record: Record, rules: Sequence[FilterRule]) -> bool:
    """True if any rule matches the record."""
    return any(rule_matches(record, rule) for rule in rules)


def passes(
    record: Record,
    include_rules: Sequence[FilterRule],
    exclude_rules: Sequence[FilterRule],
) -> bool:
    """
    Evaluate include then exclude rules.

    An empty include list accepts everything; any matching exclude rule
    drops the record even if it was included.
    """
    if include_rules and not matches(record, include_rules):
        return False
    return not matches(record, exclude_rules)


def filter_records(
    records: Iterable[Record],
    include_rules: Sequence[FilterRule],
    exclude_rules: Sequence[FilterRule],
) -> List[Record]:
    """Return the records that pass the include and exclude stages, in order."""
    kept = []
    dropped = 0
    for record in records:
        if passes(record, include_rules, exclude_rules):
            kept.append(record)
        else:
            dropped += 1
    if dropped:
        logger.debug(f"Filtered out {dropped} records, {len(kept)} remaining")
    return kept


def parse_filter_rules(value) -> List[FilterRule]:
    """
    Build canonical filter rules from a stored ``domains`` value.

    Accepted shapes:
        - None or empty: no rules
        - a string, one pattern per line (or comma separated)
        - a list of pattern strings
        - a list of mappings ``{"domain": ..., "recordTypes": [...]}``

    Raises:
        ConfigurationError: on an unrecognised shape, pattern or record type
    """
    if value is None or value == "":
        return []

    if isinstance(value, str):
        items = [part.strip() for line in value.splitlines() for part in line.split(",")]
        value = [item for item in items if item]
    elif isinstance(value, dict):
        value = [value]
    elif not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"Unsupported domain filter value: {value!r}")

    rules = []
    for item in value:
        if isinstance(item, FilterRule):
            rules.append(item)
        elif isinstance(item, str):
            rules.append(FilterRule(_checked_pattern(item)))
        elif isinstance(item, dict):
            pattern = item.get("domain") or item.get("domainPattern") or item.get("pattern")
            types = item.get("recordTypes", item.get("record_types"))
            rules.append(FilterRule(_checked_pattern(pattern), _parse_types(types)))
        else:
            raise ConfigurationError(f"Unsupported domain filter entry: {item!r}")
    return rules


def _checked_pattern(pattern) -> str:
    if not isinstance(pattern, str) or not validate_domain_pattern(pattern):
        raise ConfigurationError(f"Invalid domain pattern: {pattern!r}")
    return fqdn_key(pattern)


def _parse_types(types) -> Optional[frozenset]:
    if types is None:
        return None
    if isinstance(types, str):
        types = [t.strip() for t in types.split(",") if t.strip()]
    if not types:
        return None
    try:
        return frozenset(RecordType(str(t).upper()) for t in types)
    except ValueError as e:
        raise ConfigurationError(f"Invalid record type in filter: {e}")
