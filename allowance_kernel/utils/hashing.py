"""
Hashes for the lifecycle event chain.

Event payloads hold only ids, identities and integer amounts, so the
canonical form is plain JSON with sorted keys and no whitespace.  The
chained hash feeds each component into SHA-256 with a length prefix, so
no choice of field values can make two different events collide on the
same byte stream.
"""

import hashlib
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

GENESIS = "GENESIS"


def _encode_value(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not allowed in an event payload")


def canonicalize_json(data: Mapping[str, Any]) -> str:
    """Sorted-key, compact JSON. Raises TypeError on non-JSON values."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_encode_value,
    )


def hash_payload(payload: Mapping[str, Any]) -> str:
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_lifecycle_event(
    kind: str,
    application_id: int,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Link one event to its predecessor.

    The first event of a log links to ``GENESIS``.  Rewriting any stored
    event changes its hash and so breaks every link after it.
    """
    digest = hashlib.sha256()
    for part in (kind, str(application_id), payload_hash, prev_hash or GENESIS):
        encoded = part.encode("utf-8")
        digest.update(len(encoded).to_bytes(4, "big"))
        digest.update(encoded)
    return digest.hexdigest()
