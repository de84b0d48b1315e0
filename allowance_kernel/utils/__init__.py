"""Utility functions for the allowance kernel."""

from allowance_kernel.utils.hashing import (
    GENESIS,
    canonicalize_json,
    hash_lifecycle_event,
    hash_payload,
)

__all__ = ["GENESIS", "canonicalize_json", "hash_lifecycle_event", "hash_payload"]
