"""Canonical payload hashing and event chain links."""

import pytest

from allowance_kernel.domain.application import LifecycleEventKind
from allowance_kernel.utils.hashing import (
    GENESIS,
    canonicalize_json,
    hash_lifecycle_event,
    hash_payload,
)


def test_canonical_form_ignores_key_order():
    assert canonicalize_json({"id": 1, "amount": 5}) == '{"amount":5,"id":1}'
    assert hash_payload({"id": 1, "amount": 5}) == hash_payload({"amount": 5, "id": 1})


def test_enum_values_are_serialized_by_value():
    assert canonicalize_json({"kind": LifecycleEventKind.SIGNED}) == '{"kind":"Signed"}'


def test_non_json_values_are_rejected():
    with pytest.raises(TypeError, match="not allowed"):
        canonicalize_json({"id": object()})


def test_payload_hash_is_hex_sha256():
    digest = hash_payload({"id": 1})
    assert len(digest) == 64
    assert int(digest, 16) >= 0


def test_first_event_links_to_genesis():
    payload_hash = hash_payload({"id": 1})

    assert hash_lifecycle_event("Submitted", 1, payload_hash, None) == hash_lifecycle_event(
        "Submitted", 1, payload_hash, GENESIS
    )


def test_every_component_changes_the_link():
    payload_hash = hash_payload({"id": 1})
    base = hash_lifecycle_event("Verified", 1, payload_hash, "a" * 64)

    assert hash_lifecycle_event("Signed", 1, payload_hash, "a" * 64) != base
    assert hash_lifecycle_event("Verified", 2, payload_hash, "a" * 64) != base
    assert hash_lifecycle_event("Verified", 1, hash_payload({"id": 2}), "a" * 64) != base
    assert hash_lifecycle_event("Verified", 1, payload_hash, "b" * 64) != base


def test_component_boundaries_are_unambiguous():
    assert hash_lifecycle_event("Signed", 1, "p|q", None) != hash_lifecycle_event(
        "Signed", 1, "p", f"q|{GENESIS}"
    )
