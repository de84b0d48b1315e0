"""
Configuration Loader (``allowance_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a frozen
``RegistryConfig``.  Runtime callers go through
``allowance_config.get_active_config()`` instead of calling this module.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` / ``InvalidQuorumError`` with
  descriptive messages; there is no silent default for
  ``required_approvals``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from allowance_config.schema import LOG_LEVELS, RegistryConfig
from allowance_kernel.domain.application import validate_quorum


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Section {name!r} must be a mapping")
    return value


def _non_empty_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string, got {value!r}")
    return value


def parse_registry_config(data: dict[str, Any]) -> RegistryConfig:
    """
    Parse a loaded YAML mapping into a ``RegistryConfig``.

    Expected layout::

        config_id: default
        version: 1
        registry:
          required_approvals: 2
          reviewer_role: reviewer
          admin_role: admin
        custody:
          account: pool
        database:
          url: "sqlite://"
        logging:
          level: INFO

    Raises:
        ValueError: missing or malformed fields.
        InvalidQuorumError: required_approvals is not a positive integer.
    """
    registry = _section(data, "registry")
    custody = _section(data, "custody")
    database = _section(data, "database")
    logging_section = _section(data, "logging")

    if "required_approvals" not in registry:
        raise ValueError("registry.required_approvals is required")

    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ValueError(f"version must be an integer, got {version!r}")

    log_level = str(logging_section.get("level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {sorted(LOG_LEVELS)}, got {log_level!r}")

    return RegistryConfig(
        config_id=_non_empty_str(data.get("config_id", "default"), "config_id"),
        config_version=version,
        required_approvals=validate_quorum(registry["required_approvals"]),
        reviewer_role=_non_empty_str(registry.get("reviewer_role", "reviewer"), "registry.reviewer_role"),
        admin_role=_non_empty_str(registry.get("admin_role", "admin"), "registry.admin_role"),
        custody_account=_non_empty_str(custody.get("account", "pool"), "custody.account"),
        database_url=_non_empty_str(database.get("url", "sqlite://"), "database.url"),
        log_level=log_level,
        checksum=compute_checksum(data),
    )
