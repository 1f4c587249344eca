"""ledger.core.config

Two config surfaces only:
1) `config/default.yaml` (+ an optional overlay such as `config/user.yaml`)
2) Environment variables (`LEDGER_` prefix, `__` for nesting)

Everything else is derived.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ledger import ZERO_ADDRESS
from ledger.core.exceptions import ConfigError


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class LedgerConfig(BaseModel):
    """Insurance lifecycle timing.

    A fee falls due every ``payment_period_days``. The final
    ``payment_window_days`` before the deadline are the pending-payment window;
    past the deadline the coverage has lapsed.
    """

    payment_period_days: int = 365
    payment_window_days: int = 30
    # Account that holds custody of every pooled asset.
    custody_address: str = "0x" + "c0" * 20

    @field_validator("payment_period_days", "payment_window_days")
    @classmethod
    def days_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("period lengths must be >= 1 day")
        return v

    @field_validator("custody_address")
    @classmethod
    def custody_cannot_be_sentinel(cls, v: str) -> str:
        if v.lower() == ZERO_ADDRESS:
            raise ValueError("custody_address cannot be the zero address")
        return v.lower()

    @model_validator(mode="after")
    def window_within_period(self) -> LedgerConfig:
        if self.payment_window_days > self.payment_period_days:
            raise ValueError("payment_window_days must not exceed payment_period_days")
        return self

    @property
    def payment_period(self) -> timedelta:
        return timedelta(days=self.payment_period_days)

    @property
    def payment_window(self) -> timedelta:
        return timedelta(days=self.payment_window_days)


class AccessConfig(BaseModel):
    # Initial holder of the default admin role. Empty = assigned at bootstrap.
    default_admin: str = ""
    admin_transfer_delay_days: int = 3

    @field_validator("admin_transfer_delay_days")
    @classmethod
    def delay_is_at_least_a_day(cls, v: int) -> int:
        if v < 1:
            raise ValueError("admin_transfer_delay_days must be >= 1")
        return v

    @property
    def admin_transfer_delay(self) -> timedelta:
        return timedelta(days=self.admin_transfer_delay_days)


class PremiumConfig(BaseModel):
    # Yearly price as basis points of the insured amount.
    rate_bps: int = 200
    min_price: int = 0

    @field_validator("rate_bps", "min_price")
    @classmethod
    def cannot_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("premium parameters must be >= 0")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 5060
    auth_token: str = ""
    cors_origins: list[str] = Field(default_factory=list)


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    data_dir: Path = Path("data")
    config_dir: Path = Path("config")

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    access: AccessConfig = Field(default_factory=AccessConfig)
    premium: PremiumConfig = Field(default_factory=PremiumConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = {"env_prefix": "LEDGER_", "env_nested_delimiter": "__"}

    @property
    def db_path(self) -> Path:
        return self.data_dir / "ledger.db"

    @classmethod
    def from_yaml(cls, path: Path, *, overlay: Path | None = None) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        raw = yaml.safe_load(path.read_text()) or {}

        if overlay is not None and overlay.exists():
            overlay_data = yaml.safe_load(overlay.read_text()) or {}
            raw = _deep_merge(raw, overlay_data)

        try:
            return cls(**raw)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml", overlay=root / "config" / "user.yaml")
