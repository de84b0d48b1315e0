"""allowance_config: YAML loading, validation and the env override."""

import logging
from pathlib import Path

import pytest

from allowance_config import DATABASE_URL_ENV, get_active_config
from allowance_config.loader import compute_checksum, parse_registry_config
from allowance_config.schema import RegistryConfig
from allowance_kernel.exceptions import InvalidQuorumError


def _write(tmp_path: Path, name: str, text: str) -> Path:
    (tmp_path / f"{name}.yaml").write_text(text)
    return tmp_path


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def test_shipped_default_config():
    config = get_active_config()

    assert isinstance(config, RegistryConfig)
    assert config.config_id == "default"
    assert config.required_approvals == 2
    assert config.reviewer_role == "reviewer"
    assert config.admin_role == "admin"
    assert config.custody_account == "pool"
    assert config.database_url == "sqlite://"
    assert len(config.checksum) == 64


def test_checksum_is_deterministic():
    assert get_active_config().checksum == get_active_config().checksum


def test_custom_config_dir(tmp_path):
    _write(tmp_path, "campus", """
config_id: campus
version: 3
registry:
  required_approvals: 4
  reviewer_role: bursar
custody:
  account: scholarship-pool
logging:
  level: debug
""")
    config = get_active_config("campus", config_dir=tmp_path)

    assert config.config_id == "campus"
    assert config.config_version == 3
    assert config.required_approvals == 4
    assert config.reviewer_role == "bursar"
    assert config.custody_account == "scholarship-pool"
    assert config.log_level == "DEBUG"


def test_missing_config_set(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_active_config("nope", config_dir=tmp_path)


@pytest.mark.parametrize("quorum", [0, -1])
def test_non_positive_quorum(tmp_path, quorum):
    _write(tmp_path, "bad", f"registry:\n  required_approvals: {quorum}\n")

    with pytest.raises(InvalidQuorumError):
        get_active_config("bad", config_dir=tmp_path)


def test_quorum_is_required():
    with pytest.raises(ValueError, match="required_approvals"):
        parse_registry_config({"registry": {}})


def test_unknown_log_level():
    with pytest.raises(ValueError, match="logging.level"):
        parse_registry_config({
            "registry": {"required_approvals": 1},
            "logging": {"level": "LOUD"},
        })


def test_section_must_be_mapping():
    with pytest.raises(ValueError, match="registry"):
        parse_registry_config({"registry": [1, 2]})


def test_database_url_env_override(monkeypatch):
    monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:////tmp/allowance.db")

    assert get_active_config().database_url == "sqlite:////tmp/allowance.db"


def test_config_trace_is_logged(caplog):
    root = logging.getLogger("allowance_kernel")
    root.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger="allowance_kernel.config"):
            config = get_active_config()
    finally:
        root.removeHandler(caplog.handler)

    traces = [r for r in caplog.records if r.getMessage() == "ALLOWANCE_CONFIG_TRACE"]
    assert len(traces) == 1
    assert traces[0].checksum == config.checksum
    assert traces[0].required_approvals == 2


def test_compute_checksum_ignores_key_order():
    assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
