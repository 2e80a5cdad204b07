"""
Multi-source combiner: merge per-authority validator sets into one view.

Active stake is summed per voter across authorities (each source counted
once per voter) and every concentration metric is recomputed from the
merged distribution. Also derives ASN-level infrastructure concentration,
commission compliance lists, and the program's share of tracked network
stake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from stakewatch.analysis_engine.aggregator import ValidatorAggregate
from stakewatch.analysis_engine.breakdown import (
    DIMENSION_ASN,
    DimensionalBreakdown,
    build_breakdown,
)
from stakewatch.analysis_engine.concentration import (
    ConcentrationMetrics,
    compute_concentration,
)
from stakewatch.analysis_engine.normalizer import ValidatorProfile
from stakewatch.stakewatch_logging import get_logger

logger = get_logger(__name__)

DEFAULT_HIGH_COMMISSION_PCT = 10.0
DEFAULT_JITO_COMMISSION_CAP_BPS = 1000
DEFAULT_TOP_ASN_COUNT = 3


@dataclass(frozen=True)
class CombinedValidator:
    """
    One voter's active stake summed across sources.

    sources maps authority key -> active stake contributed by that authority.
    The profile is taken from the first source that listed the voter.
    """

    voter: str
    active_stake: float
    sources: Mapping[str, float] = field(hash=False)
    profile: ValidatorProfile

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))

    def to_dict(self, total: float | None = None) -> dict[str, Any]:
        out: dict[str, Any] = {
            "voter": self.voter,
            "totalStake": self.active_stake,
            "sources": dict(self.sources),
            "name": self.profile.name,
            "country": self.profile.country,
            "asn": self.profile.asn_label,
            "commission": self.profile.commission,
            "version": self.profile.version,
            "isJito": self.profile.is_jito,
        }
        if total is not None:
            out["pctOfTotal"] = self.active_stake / total * 100 if total > 0 else 0.0
        return out


@dataclass(frozen=True)
class InfraConcentration:
    """Hosting (ASN) concentration of combined stake."""

    asns: DimensionalBreakdown
    top_asn_count: int
    top_asn_pct: float
    unique_asns: int

    def to_dict(self, limit: int | None = 15) -> dict[str, Any]:
        return {
            "topASNs": self.asns.to_list(limit),
            f"top{self.top_asn_count}ASNPct": self.top_asn_pct,
            "uniqueASNs": self.unique_asns,
        }


@dataclass(frozen=True)
class ComplianceEntry:
    voter: str
    name: str | None
    value: float
    stake: float

    def to_dict(self, value_key: str) -> dict[str, Any]:
        return {"voter": self.voter, "name": self.name, value_key: self.value, "stake": self.stake}


@dataclass(frozen=True)
class CommissionCompliance:
    """Validators above the commission threshold or the Jito tip-commission cap."""

    high_commission_pct: float
    jito_commission_cap_bps: int
    high_commission: tuple[ComplianceEntry, ...] = ()
    jito_over_cap: tuple[ComplianceEntry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "highCommissionThresholdPct": self.high_commission_pct,
            "jitoCommissionCapBps": self.jito_commission_cap_bps,
            "highCommissionCount": len(self.high_commission),
            "highCommission": [e.to_dict("commission") for e in self.high_commission],
            "jitoOverCapCount": len(self.jito_over_cap),
            "jitoOverCap": [e.to_dict("jitoCommission") for e in self.jito_over_cap],
        }


@dataclass(frozen=True)
class NetworkShare:
    """Program stake against the whole-network stake of the validators it delegates to."""

    program_stake: float
    tracked_network_stake: float
    program_pct_of_tracked: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sfdpStake": self.program_stake,
            "trackedNetworkStake": self.tracked_network_stake,
            "sfdpPctOfTracked": self.program_pct_of_tracked,
        }


@dataclass(frozen=True)
class CombinedView:
    total_active_stake: float
    validators: tuple[CombinedValidator, ...]
    metrics: ConcentrationMetrics
    infra: InfraConcentration
    compliance: CommissionCompliance
    network_share: NetworkShare
    sources: tuple[str, ...] = field(default_factory=tuple)

    @property
    def unique_validators(self) -> int:
        return len(self.validators)

    @property
    def active_validators(self) -> tuple[CombinedValidator, ...]:
        return tuple(v for v in self.validators if v.active_stake > 0)

    def to_dict(self, top_validators: int | None = 50) -> dict[str, Any]:
        listed = self.validators if top_validators is None else self.validators[:top_validators]
        return {
            "sources": list(self.sources),
            "totalActiveStake": self.total_active_stake,
            "uniqueValidators": self.unique_validators,
            "activeValidators": len(self.active_validators),
            "decentralization": self.metrics.to_dict(),
            "topValidators": [v.to_dict(self.total_active_stake) for v in listed],
            "infraConcentration": self.infra.to_dict(),
            "commissionCompliance": self.compliance.to_dict(),
            "foundationVsNetwork": self.network_share.to_dict(),
        }


def merge_sources(
    per_source: Mapping[str, Sequence[ValidatorAggregate]],
) -> tuple[CombinedValidator, ...]:
    """
    Union voters across sources, summing active stake.

    Returns combined validators sorted by stake descending, ties in
    first-sighting order.
    """
    stakes: dict[str, float] = {}
    sources: dict[str, dict[str, float]] = {}
    profiles: dict[str, ValidatorProfile] = {}
    for key, aggregates in per_source.items():
        for agg in aggregates:
            if agg.voter not in stakes:
                stakes[agg.voter] = 0.0
                sources[agg.voter] = {}
                profiles[agg.voter] = agg.profile
            stakes[agg.voter] += agg.active_stake
            sources[agg.voter][key] = sources[agg.voter].get(key, 0.0) + agg.active_stake

    merged = [
        CombinedValidator(voter=voter, active_stake=stake, sources=sources[voter], profile=profiles[voter])
        for voter, stake in stakes.items()
    ]
    merged.sort(key=lambda v: v.active_stake, reverse=True)
    return tuple(merged)


def infra_concentration(
    validators: Sequence[Any],
    total_active_stake: float,
    top_asn_count: int = DEFAULT_TOP_ASN_COUNT,
) -> InfraConcentration:
    """ASN tallies plus the combined share of the top_asn_count providers."""
    asns = build_breakdown(validators, DIMENSION_ASN, total_active_stake)
    return InfraConcentration(
        asns=asns,
        top_asn_count=top_asn_count,
        top_asn_pct=asns.top_pct(top_asn_count),
        unique_asns=len(asns),
    )


def commission_compliance(
    validators: Sequence[CombinedValidator],
    high_commission_pct: float = DEFAULT_HIGH_COMMISSION_PCT,
    jito_commission_cap_bps: int = DEFAULT_JITO_COMMISSION_CAP_BPS,
) -> CommissionCompliance:
    """Filter staked validators whose commission or Jito commission exceeds the limits."""
    high: list[ComplianceEntry] = []
    jito: list[ComplianceEntry] = []
    for v in validators:
        if v.active_stake <= 0:
            continue
        p = v.profile
        if p.commission is not None and p.commission > high_commission_pct:
            high.append(ComplianceEntry(v.voter, p.name, p.commission, v.active_stake))
        if p.is_jito and p.jito_commission_bps is not None and p.jito_commission_bps > jito_commission_cap_bps:
            jito.append(ComplianceEntry(v.voter, p.name, p.jito_commission_bps, v.active_stake))
    return CommissionCompliance(
        high_commission_pct=high_commission_pct,
        jito_commission_cap_bps=jito_commission_cap_bps,
        high_commission=tuple(high),
        jito_over_cap=tuple(jito),
    )


def network_share(validators: Sequence[CombinedValidator], program_stake: float) -> NetworkShare:
    tracked = sum(
        v.profile.total_network_stake
        for v in validators
        if v.profile.total_network_stake is not None and v.profile.total_network_stake > 0
    )
    return NetworkShare(
        program_stake=program_stake,
        tracked_network_stake=tracked,
        program_pct_of_tracked=program_stake / tracked * 100 if tracked > 0 else None,
    )


def combine_authorities(
    per_source: Mapping[str, Sequence[ValidatorAggregate]],
    *,
    high_commission_pct: float = DEFAULT_HIGH_COMMISSION_PCT,
    jito_commission_cap_bps: int = DEFAULT_JITO_COMMISSION_CAP_BPS,
    top_asn_count: int = DEFAULT_TOP_ASN_COUNT,
) -> CombinedView:
    """
    Merge per-authority aggregates and recompute metrics over the union.

    Metrics are never averaged or summed from per-source values; the merged
    distribution is analysed from scratch.
    """
    validators = merge_sources(per_source)
    metrics = compute_concentration(v.active_stake for v in validators)
    total = metrics.total_stake
    view = CombinedView(
        total_active_stake=total,
        validators=validators,
        metrics=metrics,
        infra=infra_concentration(validators, total, top_asn_count),
        compliance=commission_compliance(validators, high_commission_pct, jito_commission_cap_bps),
        network_share=network_share(validators, total),
        sources=tuple(per_source.keys()),
    )
    logger.info(
        "sources_combined",
        sources=list(view.sources),
        unique_validators=view.unique_validators,
        nakamoto_33=metrics.nakamoto_coefficient_33,
    )
    return view
