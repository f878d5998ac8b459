"""
Fleet Kernel - payment reconciliation core for the fleet dashboard.

A small, storage-agnostic kernel with:
- Deterministic payment references (FLEET-<rental>-<customer>)
- HMAC verification of bank webhooks on the raw request body
- Idempotent, per-rental serialized payment status transitions
- Collection statistics derived from the current ledger snapshot
"""

__version__ = "0.1.0"
