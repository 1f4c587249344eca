from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from ledger.core.config import AccessConfig, Config, LedgerConfig
from ledger.core.exceptions import ConfigError


def test_repo_default_yaml_loads(test_config: Config) -> None:
    assert test_config.ledger.payment_period == timedelta(days=365)
    assert test_config.ledger.payment_window == timedelta(days=30)
    assert test_config.access.admin_transfer_delay == timedelta(days=3)
    assert test_config.db_path.name == "ledger.db"


def test_overlay_is_deep_merged(tmp_path: Path) -> None:
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    (cfg_dir / "default.yaml").write_text("ledger:\n  payment_period_days: 90\n  payment_window_days: 10\n")
    (cfg_dir / "user.yaml").write_text("ledger:\n  payment_window_days: 5\n")

    cfg = Config.from_repo_defaults(tmp_path)
    assert cfg.ledger.payment_period_days == 90
    assert cfg.ledger.payment_window_days == 5


def test_window_longer_than_period_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "default.yaml"
    path.write_text("ledger:\n  payment_period_days: 10\n  payment_window_days: 30\n")
    with pytest.raises(ConfigError):
        Config.from_yaml(path)


def test_zero_period_is_rejected() -> None:
    with pytest.raises(ValueError):
        LedgerConfig(payment_period_days=0)


def test_custody_address_is_lowercased_and_not_the_sentinel() -> None:
    assert LedgerConfig(custody_address="0x" + "AB" * 20).custody_address == "0x" + "ab" * 20
    with pytest.raises(ValueError):
        LedgerConfig(custody_address="0x" + "0" * 40)


def test_config_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGER_PREMIUM__RATE_BPS", "150")
    cfg = Config()  # BaseSettings reads env
    assert cfg.premium.rate_bps == 150


def test_config_from_yaml_raises_if_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        Config.from_yaml(tmp_path / "missing.yaml")


@pytest.mark.parametrize("days", [0, -1])
def test_admin_transfer_delay_below_a_day_is_rejected(days: int) -> None:
    with pytest.raises(ValueError):
        AccessConfig(admin_transfer_delay_days=days)
