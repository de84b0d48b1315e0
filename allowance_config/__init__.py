"""
allowance_config -- single public entrypoint for registry configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``RegistryConfig``.

Architecture position:
    Configuration -- sits above ``allowance_kernel`` and below
    ``allowance_services``.  The kernel never imports from this package.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - The only environment override is ``ALLOWANCE_DATABASE_URL``.
    - Deterministic checksum: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the given name.
    - ``ValueError`` / ``InvalidQuorumError`` -- malformed values.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``ALLOWANCE_CONFIG_TRACE`` log entry with the config id, version,
    checksum and quorum.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from allowance_config.loader import load_yaml_file, parse_registry_config
from allowance_config.schema import RegistryConfig

_logger = logging.getLogger("allowance_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DATABASE_URL_ENV = "ALLOWANCE_DATABASE_URL"


def get_active_config(
    config_name: str = "default",
    config_dir: Path | None = None,
) -> RegistryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_name: Name of the configuration set (``<name>.yaml``).
        config_dir: Override path to the configuration sets directory.
            Defaults to allowance_config/sets/.

    Raises:
        FileNotFoundError: If no such configuration set exists.
        ValueError: If configuration validation fails.
        InvalidQuorumError: If required_approvals is not positive.
    """
    sets_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_registry_config(load_yaml_file(path))

    override = os.environ.get(DATABASE_URL_ENV)
    if override:
        config = dataclasses.replace(config, database_url=override)

    _logger.info(
        "ALLOWANCE_CONFIG_TRACE",
        extra={
            "trace_type": "ALLOWANCE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.config_version,
            "checksum": config.checksum,
            "required_approvals": config.required_approvals,
            "custody_account": config.custody_account,
            "database_url_overridden": bool(override),
        },
    )
    return config


__all__ = ["DATABASE_URL_ENV", "RegistryConfig", "get_active_config"]
