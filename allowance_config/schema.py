"""
RegistryConfig schema.

The parsed, frozen form of one configuration set.  YAML files are parsed
into this type by ``allowance_config.loader``; the only runtime accessor
is ``allowance_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class RegistryConfig:
    """Runtime configuration of one disbursement registry."""

    config_id: str
    config_version: int
    required_approvals: int
    reviewer_role: str = "reviewer"
    admin_role: str = "admin"
    custody_account: str = "pool"
    database_url: str = "sqlite://"
    log_level: str = "INFO"
    checksum: str = ""
