"""
Storage module for call intake.

Provides SQLite-based storage for:
- The contact allowlist and homeowner records (read-only to the pipeline)
- Call records, one per vendor call id
- Claims and their per-homeowner number sequence
"""

from .call_store import (
    CallStore,
    get_call_store,
)

__all__ = [
    "CallStore",
    "get_call_store",
]
