"""Utility modules for the fleet kernel."""

from fleet_kernel.utils.keyed_lock import KeyedLock
from fleet_kernel.utils.sanitize import sanitize_input
from fleet_kernel.utils.signatures import (
    compute_signature,
    format_signature_header,
    parse_signature_header,
    verify_signature,
)

__all__ = [
    "KeyedLock",
    "compute_signature",
    "format_signature_header",
    "parse_signature_header",
    "sanitize_input",
    "verify_signature",
]
