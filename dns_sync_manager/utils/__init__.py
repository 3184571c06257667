"""
Utility functions and helpers.

This package contains validation and normalization helpers shared by the
sync engine and the configuration boundary.
"""

from .validators import (
    fqdn_key,
    strip_trailing_dot,
    validate_domain_pattern,
    validate_fqdn,
    validate_zone_name,
)

__all__ = [
    "fqdn_key",
    "strip_trailing_dot",
    "validate_domain_pattern",
    "validate_fqdn",
    "validate_zone_name",
]
