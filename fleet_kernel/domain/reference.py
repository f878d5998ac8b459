"""
Payment reference codec.

A payment reference ties a bank transfer to a rental.  It is printed on the
invoice, typed by the customer into their banking app and echoed back by
the bank webhook, so it has to be both human-auditable and machine-parsable:

    FLEET-<RENTALID>-<CUSTOMERTOKEN>

The customer token is an upper-case alphanumeric squeeze of the customer
name.  It only helps a human reading a bank statement; the rental id is
the sole identity component.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

REFERENCE_PREFIX = "FLEET"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class ReferenceDecodeResult:
    valid: bool
    rental_id: str | None = None


def customer_token(customer_name: str) -> str:
    """Upper-case alphanumeric normalisation of a customer name (lossy)."""
    return _NON_ALNUM.sub("", customer_name or "").upper()


def encode_reference(rental_id: str, customer_name: str) -> str:
    """
    Build the payment reference for a rental.

    Pure and total: an empty customer name yields an empty token segment
    but still a well-formed reference.

    Example:
        >>> encode_reference("r2", "Michael Chen")
        'FLEET-R2-MICHAELCHEN'
    """
    return f"{REFERENCE_PREFIX}-{rental_id.upper()}-{customer_token(customer_name)}"


def decode_reference(reference: str) -> ReferenceDecodeResult:
    """
    Extract the rental id from a payment reference.

    Only the literal prefix is matched case-insensitively; the rental id is
    returned in the case it was received in.  The customer token is not
    validated.

    Example:
        >>> decode_reference("FLEET-r2-MICHAELCHEN")
        ReferenceDecodeResult(valid=True, rental_id='r2')
        >>> decode_reference("INVALID-FORMAT")
        ReferenceDecodeResult(valid=False, rental_id=None)
    """
    if not isinstance(reference, str):
        return ReferenceDecodeResult(valid=False)

    prefix, sep, remainder = reference.strip().partition("-")
    if not sep or prefix.upper() != REFERENCE_PREFIX:
        return ReferenceDecodeResult(valid=False)

    # The token never contains a hyphen, so the last one closes the rental id
    rental_id, sep, _token = remainder.rpartition("-")
    if not sep or not rental_id:
        return ReferenceDecodeResult(valid=False)

    return ReferenceDecodeResult(valid=True, rental_id=rental_id)
