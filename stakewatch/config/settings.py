"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate numeric settings and provide defaults for optional ones.
- Expose typed settings (thresholds, yield rate, data dir, log level)
  for the CLI; the analysis engine receives them as an AnalysisConfig.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from stakewatch.analysis_engine.pipeline import AnalysisConfig
from stakewatch.config.env import (
    get_env_float,
    get_env_int,
    get_env_str,
    get_project_root,
)


@dataclass(frozen=True)
class Settings:
    """Typed settings snapshot read from the environment."""

    high_commission_pct: float = 10.0
    jito_commission_cap_bps: int = 1000
    annual_yield_rate: float = 0.065
    top_asn_count: int = 3
    economics_authority: str | None = None
    data_dir: Path = Path("data")
    log_level: str = "INFO"
    log_format: str = "json"

    def analysis_config(self) -> AnalysisConfig:
        """Engine thresholds derived from these settings."""
        return AnalysisConfig(
            high_commission_pct=self.high_commission_pct,
            jito_commission_cap_bps=self.jito_commission_cap_bps,
            annual_yield_rate=self.annual_yield_rate,
            top_asn_count=self.top_asn_count,
            economics_authority=self.economics_authority,
        )


def get_settings() -> Settings:
    """
    Return the current application settings.

    Raises:
        ValueError: if a numeric variable cannot be parsed.
    """
    data_dir = Path(get_env_str("STAKEWATCH_DATA_DIR", "data"))
    if not data_dir.is_absolute():
        data_dir = get_project_root() / data_dir
    return Settings(
        high_commission_pct=get_env_float("STAKEWATCH_HIGH_COMMISSION_PCT", 10.0),
        jito_commission_cap_bps=get_env_int("STAKEWATCH_JITO_COMMISSION_CAP_BPS", 1000),
        annual_yield_rate=get_env_float("STAKEWATCH_ANNUAL_YIELD_RATE", 0.065),
        top_asn_count=get_env_int("STAKEWATCH_TOP_ASN_COUNT", 3),
        economics_authority=get_env_str("STAKEWATCH_ECONOMICS_AUTHORITY"),
        data_dir=data_dir,
        log_level=(get_env_str("LOG_LEVEL", "INFO") or "INFO").upper(),
        log_format=(get_env_str("LOG_FORMAT", "json") or "json").lower(),
    )
