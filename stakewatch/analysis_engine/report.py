"""
Report assembly: compose analysed sections into one immutable report.

Holds the report value types (per-authority section, network section,
validator economics, the report itself) and assemble_report(), which only
arranges already-computed parts plus the median-stake reward estimate.
No I/O; serialization is to_dict(), persistence belongs to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from stakewatch.analysis_engine.aggregator import ValidatorAggregate
from stakewatch.analysis_engine.breakdown import BucketTally, DimensionalBreakdown
from stakewatch.analysis_engine.combiner import CombinedView, InfraConcentration
from stakewatch.analysis_engine.concentration import ConcentrationMetrics, StakeStats
from stakewatch.analysis_engine.models import EpochInfo

DEFAULT_ANNUAL_YIELD_RATE = 0.065
BREAKDOWN_LIST_LIMIT = 20


@dataclass(frozen=True)
class JitoStats:
    validators: int = 0
    stake: float = 0.0
    pct: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"validators": self.validators, "stake": self.stake, "pct": self.pct}


def _breakdowns_to_dict(breakdowns: Mapping[str, DimensionalBreakdown]) -> dict[str, Any]:
    def listed(name: str, limit: int | None = None) -> list[dict[str, Any]]:
        b = breakdowns.get(name)
        return b.to_list(limit) if b is not None else []

    return {
        "geographic": {
            "countries": listed("countries"),
            "continents": listed("continents"),
            "topCities": listed("cities", BREAKDOWN_LIST_LIMIT),
            "topASNs": listed("asns", BREAKDOWN_LIST_LIMIT),
        },
        "software": {"versions": listed("versions")},
        "commissionDistribution": listed("commissions"),
    }


@dataclass(frozen=True)
class AuthorityReport:
    """Analysis of the stake accounts controlled by one authority."""

    key: str
    label: str
    authority: str | None
    total_accounts: int
    empty_accounts: int
    total_active: float
    total_deactivating: float
    validators: tuple[ValidatorAggregate, ...]
    metrics: ConcentrationMetrics
    stake_stats: StakeStats
    buckets: tuple[BucketTally, ...]
    breakdowns: Mapping[str, DimensionalBreakdown] = field(hash=False)
    jito: JitoStats
    delinquent_count: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "breakdowns", MappingProxyType(dict(self.breakdowns)))

    @property
    def unique_validators(self) -> int:
        return len(self.validators)

    @property
    def active_validators(self) -> int:
        return sum(1 for v in self.validators if v.active_stake > 0)

    def pct_of_pool(self, validator: ValidatorAggregate) -> float:
        if self.total_active <= 0:
            return 0.0
        return validator.active_stake / self.total_active * 100

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "label": self.label,
            "authority": self.authority,
            "totalAccounts": self.total_accounts,
            "emptyAccounts": self.empty_accounts,
            "totalActive": self.total_active,
            "totalDeactivating": self.total_deactivating,
            "uniqueValidators": self.unique_validators,
            "activeValidators": self.active_validators,
            "decentralization": self.metrics.to_dict(),
            "stakeStats": self.stake_stats.to_dict(),
            "stakeBuckets": [b.to_dict() for b in self.buckets],
        }
        out.update(_breakdowns_to_dict(self.breakdowns))
        out["jitoStats"] = self.jito.to_dict()
        out["delinquentCount"] = self.delinquent_count
        out["validators"] = [
            {**v.to_dict(), "pctOfPool": self.pct_of_pool(v)} for v in self.validators
        ]
        return out


@dataclass(frozen=True)
class NetworkReport:
    """Whole-network view built from every vote account."""

    total_stake: float
    current_validators: int
    delinquent_validators: int
    validators: tuple[ValidatorAggregate, ...]
    metrics: ConcentrationMetrics
    stake_stats: StakeStats
    buckets: tuple[BucketTally, ...]
    breakdowns: Mapping[str, DimensionalBreakdown] = field(hash=False)
    infra: InfraConcentration
    jito: JitoStats
    superminority_voters: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "breakdowns", MappingProxyType(dict(self.breakdowns)))

    @property
    def total_validators(self) -> int:
        return len(self.validators)

    def to_dict(self) -> dict[str, Any]:
        members = set(self.superminority_voters)
        out: dict[str, Any] = {
            "totalStake": self.total_stake,
            "totalValidators": self.total_validators,
            "currentValidators": self.current_validators,
            "delinquentValidators": self.delinquent_validators,
            "decentralization": self.metrics.to_dict(),
            "stakeStats": self.stake_stats.to_dict(),
            "stakeBuckets": [b.to_dict() for b in self.buckets],
        }
        out.update(_breakdowns_to_dict(self.breakdowns))
        countries = self.breakdowns.get("countries")
        cities = self.breakdowns.get("cities")
        out["infraConcentration"] = {
            **self.infra.to_dict(limit=None),
            "uniqueCountries": len(countries) if countries is not None else 0,
            "uniqueCities": len(cities) if cities is not None else 0,
        }
        out["jitoStats"] = self.jito.to_dict()
        out["superminorityVoters"] = list(self.superminority_voters)
        out["validators"] = [
            {
                **v.to_dict(),
                "stake": v.active_stake,
                "pctOfTotal": v.active_stake / self.total_stake * 100 if self.total_stake > 0 else 0.0,
                "isSuperminority": v.voter in members,
            }
            for v in self.validators
        ]
        return out


@dataclass(frozen=True)
class ValidatorEconomics:
    """Reward estimate for a median-stake validator at a fixed yield rate."""

    source: str
    median_stake: float
    annual_yield_rate: float
    validators_in_program: int

    @property
    def est_annual_reward(self) -> float:
        return self.median_stake * self.annual_yield_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "medianStakeSOL": self.median_stake,
            "annualYieldRate": self.annual_yield_rate,
            "estAnnualRewardSOL": self.est_annual_reward,
            "validatorsInProgram": self.validators_in_program,
        }


@dataclass(frozen=True)
class DecentralizationReport:
    epoch: EpochInfo
    authorities: Mapping[str, AuthorityReport] = field(hash=False)
    combined: CombinedView | None = None
    economics: ValidatorEconomics | None = None
    network: NetworkReport | None = None
    generated_at: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "authorities", MappingProxyType(dict(self.authorities)))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"timestamp": self.generated_at}
        out.update(self.epoch.to_dict())
        out["accounts"] = {key: section.to_dict() for key, section in self.authorities.items()}
        if self.combined is not None:
            combined = self.combined.to_dict()
            if self.economics is not None:
                combined["validatorEconomics"] = self.economics.to_dict()
            out["combined"] = combined
        elif self.economics is not None:
            out["validatorEconomics"] = self.economics.to_dict()
        if self.network is not None:
            out["network"] = self.network.to_dict()
        return out


def _economics(
    authorities: Mapping[str, AuthorityReport],
    combined: CombinedView | None,
    annual_yield_rate: float,
    economics_authority: str | None,
) -> ValidatorEconomics | None:
    if economics_authority is not None and economics_authority in authorities:
        section = authorities[economics_authority]
        return ValidatorEconomics(
            source=economics_authority,
            median_stake=section.stake_stats.median,
            annual_yield_rate=annual_yield_rate,
            validators_in_program=(
                len(combined.active_validators) if combined is not None else section.active_validators
            ),
        )
    if combined is not None:
        stakes = sorted((v.active_stake for v in combined.active_validators), reverse=True)
        return ValidatorEconomics(
            source="combined",
            median_stake=stakes[len(stakes) // 2] if stakes else 0.0,
            annual_yield_rate=annual_yield_rate,
            validators_in_program=len(stakes),
        )
    if len(authorities) == 1:
        (key, section), = authorities.items()
        return ValidatorEconomics(
            source=key,
            median_stake=section.stake_stats.median,
            annual_yield_rate=annual_yield_rate,
            validators_in_program=section.active_validators,
        )
    return None


def assemble_report(
    epoch: EpochInfo,
    authorities: Sequence[AuthorityReport],
    *,
    combined: CombinedView | None = None,
    network: NetworkReport | None = None,
    annual_yield_rate: float = DEFAULT_ANNUAL_YIELD_RATE,
    economics_authority: str | None = None,
    generated_at: str | None = None,
) -> DecentralizationReport:
    """
    Compose sections into a report.

    Economics use the median stake of economics_authority when it names an
    analysed authority, else the combined distribution, else the single
    authority present.

    Raises:
        ValueError: if two sections share a key.
    """
    by_key: dict[str, AuthorityReport] = {}
    for section in authorities:
        if section.key in by_key:
            raise ValueError(f"duplicate authority key {section.key!r}")
        by_key[section.key] = section
    return DecentralizationReport(
        epoch=epoch,
        authorities=by_key,
        combined=combined,
        economics=_economics(by_key, combined, annual_yield_rate, economics_authority),
        network=network,
        generated_at=generated_at,
    )
