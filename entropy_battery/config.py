"""Runtime settings, overridable through ``ENTROPY_BATTERY_*`` environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from entropy_battery.basic import BASIC_PASS_FRACTION
from entropy_battery.bits import ConversionPolicy
from entropy_battery.diehard import ReusePolicy
from entropy_battery.results import ALPHA, NIST_PASS_FRACTION


class BatteryConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ENTROPY_BATTERY_", env_file=".env", extra="ignore")

    alpha: float = Field(ALPHA, gt=0.0, lt=1.0)
    nist_pass_fraction: float = Field(NIST_PASS_FRACTION, gt=0.0, le=1.0)
    basic_pass_fraction: float = Field(BASIC_PASS_FRACTION, gt=0.0, le=1.0)
    parallel: bool = True
    max_workers: int | None = Field(None, ge=1)
    test_timeout: float | None = Field(None, gt=0.0)  # seconds per test
    conversion: ConversionPolicy = ConversionPolicy.AUTO
    expand_to: int | None = Field(None, ge=1)
    diehard_reuse: ReusePolicy = ReusePolicy.SCALE


def load_config(**overrides) -> BatteryConfig:
    """Settings from the environment, with explicit keyword overrides on top."""
    return BatteryConfig(**{k: v for k, v in overrides.items() if v is not None})
