"""
Validators - Input validation for domain names and filter patterns

This module provides validation and normalization helpers for FQDNs,
zone names and the domain patterns used by include/exclude filters.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Service labels such as _dmarc or _sip._tcp are allowed.
_LABEL_RE = re.compile(r"^(?:_?[a-zA-Z0-9]([a-zA-Z0-9_-]*[a-zA-Z0-9])?|\*)$")


def strip_trailing_dot(fqdn: str) -> str:
    """Remove surrounding whitespace and a trailing root dot."""
    if not fqdn:
        return fqdn
    fqdn = fqdn.strip()
    return fqdn[:-1] if fqdn.endswith(".") else fqdn


def fqdn_key(fqdn: str) -> str:
    """Comparison form of a name: no trailing dot, lower case."""
    return strip_trailing_dot(fqdn or "").lower()


def validate_fqdn(fqdn: str) -> bool:
    """
    Validate a Fully Qualified Domain Name.

    A single trailing dot is accepted. Wildcard and underscore-prefixed
    service labels are allowed since they occur in real zones.

    Args:
        fqdn: The FQDN to validate

    Returns:
        True if valid, False otherwise
    """
    if not fqdn or not isinstance(fqdn, str):
        return False

    fqdn = strip_trailing_dot(fqdn)

    if len(fqdn) > 253:
        logger.warning(f"FQDN too long: {fqdn}")
        return False

    labels = fqdn.split(".")

    if len(labels) < 2:
        logger.warning(f"FQDN must have at least 2 labels: {fqdn}")
        return False

    if any(label == "" for label in labels):
        logger.warning(f"FQDN contains empty labels: {fqdn}")
        return False

    for index, label in enumerate(labels):
        if len(label) > 63 or not _LABEL_RE.match(label):
            logger.warning(f"Invalid label '{label}' in FQDN: {fqdn}")
            return False
        if label == "*" and index != 0:
            logger.warning(f"Wildcard label must be leftmost: {fqdn}")
            return False

    return True


def validate_zone_name(zone: str) -> bool:
    """Validate a DNS zone name (no wildcard labels)."""
    if not validate_fqdn(zone):
        return False
    return "*" not in zone


def validate_domain_pattern(pattern: str) -> bool:
    """
    Validate a filter domain pattern.

    Accepted shapes are ``*`` (everything), ``*.example.com`` (strict
    subdomains) and ``example.com`` (exact name or zone).
    """
    if not pattern or not isinstance(pattern, str):
        return False

    pattern = pattern.strip()
    if pattern == "*":
        return True
    if pattern.startswith("*."):
        return validate_zone_name(pattern[2:])
    return validate_zone_name(pattern)
