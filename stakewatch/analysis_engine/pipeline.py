"""
Analysis pipeline: raw collaborator payloads -> DecentralizationReport.

Single entrypoint for the CLI and for library callers: normalize each
authority's stake accounts, aggregate per validator, compute concentration
metrics, breakdowns and buckets, combine authorities when there is more than
one, optionally analyse the whole network from vote accounts, and assemble
the report. Synchronous and stateless; thresholds come from AnalysisConfig.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from stakewatch.analysis_engine.aggregator import (
    ValidatorAggregate,
    aggregate_delegations,
    total_active_stake,
    total_deactivating_stake,
)
from stakewatch.analysis_engine.breakdown import (
    AUTHORITY_STAKE_BUCKETS,
    DIMENSION_ASN,
    DIMENSION_CITY,
    DIMENSION_COMMISSION,
    DIMENSION_COUNTRY,
    DIMENSION_VERSION,
    NETWORK_STAKE_BUCKETS,
    DimensionalBreakdown,
    StakeBucket,
    bucket_stakes,
    build_breakdown,
    build_continent_breakdown,
)
from stakewatch.analysis_engine.combiner import (
    DEFAULT_HIGH_COMMISSION_PCT,
    DEFAULT_JITO_COMMISSION_CAP_BPS,
    DEFAULT_TOP_ASN_COUNT,
    combine_authorities,
    infra_concentration,
)
from stakewatch.analysis_engine.concentration import (
    SUPERMINORITY_THRESHOLD,
    TOP_N_LEVELS,
    compute_concentration,
    compute_stake_stats,
    threshold_prefix_count,
)
from stakewatch.analysis_engine.models import (
    BlockProduction,
    EpochInfo,
    ValidatorMetadata,
    VotePerformance,
)
from stakewatch.analysis_engine.normalizer import normalize_stake_accounts, resolve_profile
from stakewatch.analysis_engine.report import (
    DEFAULT_ANNUAL_YIELD_RATE,
    AuthorityReport,
    DecentralizationReport,
    JitoStats,
    NetworkReport,
    assemble_report,
)
from stakewatch.stakewatch_logging import bind_authority, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Thresholds and static tables for one analysis run.

    country_continent overrides the built-in continent table when set.
    """

    high_commission_pct: float = DEFAULT_HIGH_COMMISSION_PCT
    jito_commission_cap_bps: int = DEFAULT_JITO_COMMISSION_CAP_BPS
    annual_yield_rate: float = DEFAULT_ANNUAL_YIELD_RATE
    top_asn_count: int = DEFAULT_TOP_ASN_COUNT
    economics_authority: str | None = None
    top_n_levels: tuple[int, ...] = TOP_N_LEVELS
    authority_buckets: tuple[StakeBucket, ...] = AUTHORITY_STAKE_BUCKETS
    network_buckets: tuple[StakeBucket, ...] = NETWORK_STAKE_BUCKETS
    country_continent: Mapping[str, str] | None = field(default=None, hash=False)

    def __post_init__(self) -> None:
        if self.country_continent is not None:
            object.__setattr__(self, "country_continent", MappingProxyType(dict(self.country_continent)))


@dataclass(frozen=True)
class AuthorityInput:
    """Stake accounts fetched for one stake/withdraw authority."""

    key: str
    label: str
    stake_accounts: Sequence[Mapping[str, Any]] = field(default_factory=tuple, hash=False)
    authority: str | None = None


def build_breakdowns(
    validators: Sequence[Any],
    total: float,
    country_continent: Mapping[str, str] | None = None,
) -> dict[str, DimensionalBreakdown]:
    return {
        "countries": build_breakdown(validators, DIMENSION_COUNTRY, total),
        "continents": build_continent_breakdown(validators, total, country_continent),
        "cities": build_breakdown(validators, DIMENSION_CITY, total),
        "asns": build_breakdown(validators, DIMENSION_ASN, total),
        "versions": build_breakdown(validators, DIMENSION_VERSION, total),
        "commissions": build_breakdown(validators, DIMENSION_COMMISSION, total),
    }


def jito_stats(validators: Iterable[ValidatorAggregate], total: float) -> JitoStats:
    """Jito-enabled validators with active stake and their share of total."""
    count = 0
    stake = 0.0
    for v in validators:
        if v.active_stake > 0 and v.profile.is_jito:
            count += 1
            stake += v.active_stake
    return JitoStats(validators=count, stake=stake, pct=stake / total * 100 if total > 0 else 0.0)


def superminority_members(validators: Sequence[ValidatorAggregate], total: float) -> tuple[str, ...]:
    """Voters of the smallest top-stake prefix holding >= 33% of total."""
    ranked = [v for v in validators if v.active_stake > 0]
    ranked.sort(key=lambda v: v.active_stake, reverse=True)
    k = threshold_prefix_count([v.active_stake for v in ranked], total, SUPERMINORITY_THRESHOLD)
    return tuple(v.voter for v in ranked[:k])


def analyze_authority(
    source: AuthorityInput,
    metadata: Mapping[str, ValidatorMetadata] | None = None,
    votes: Mapping[str, VotePerformance] | None = None,
    block_production: Mapping[str, BlockProduction] | None = None,
    config: AnalysisConfig | None = None,
) -> AuthorityReport:
    """
    Analyse one authority's stake accounts.

    Raises:
        DataFormatError: if any delegation carries a malformed field.
    """
    cfg = config or AnalysisConfig()
    normalized = normalize_stake_accounts(source.stake_accounts)
    validators = aggregate_delegations(
        normalized.delegations,
        lambda voter: resolve_profile(voter, metadata, votes, block_production),
    )
    active_total = total_active_stake(validators)
    stakes = [v.active_stake for v in validators]

    section = AuthorityReport(
        key=source.key,
        label=source.label,
        authority=source.authority,
        total_accounts=normalized.total_accounts,
        empty_accounts=normalized.empty_accounts,
        total_active=active_total,
        total_deactivating=total_deactivating_stake(validators),
        validators=validators,
        metrics=compute_concentration(stakes, cfg.top_n_levels),
        stake_stats=compute_stake_stats(stakes),
        buckets=bucket_stakes(stakes, cfg.authority_buckets),
        breakdowns=build_breakdowns(validators, active_total, cfg.country_continent),
        jito=jito_stats(validators, active_total),
        delinquent_count=sum(1 for v in validators if v.active_stake > 0 and v.profile.delinquent),
    )
    bind_authority(source.key, __name__).info(
        "authority_analyzed",
        total_accounts=section.total_accounts,
        empty_accounts=section.empty_accounts,
        active_validators=section.active_validators,
        nakamoto_33=section.metrics.nakamoto_coefficient_33,
        hhi=section.metrics.hhi,
        gini=section.metrics.gini,
    )
    return section


def analyze_network(
    votes: Mapping[str, VotePerformance],
    metadata: Mapping[str, ValidatorMetadata] | None = None,
    block_production: Mapping[str, BlockProduction] | None = None,
    config: AnalysisConfig | None = None,
) -> NetworkReport:
    """Analyse every vote account's activated stake (current and delinquent)."""
    cfg = config or AnalysisConfig()
    validators = [
        ValidatorAggregate(
            voter=voter,
            active_stake=vote.activated_stake,
            profile=resolve_profile(voter, metadata, votes, block_production),
        )
        for voter, vote in votes.items()
    ]
    validators.sort(key=lambda v: v.active_stake, reverse=True)
    stakes = [v.active_stake for v in validators]
    metrics = compute_concentration(stakes, cfg.top_n_levels)
    total = metrics.total_stake
    delinquent = sum(1 for v in votes.values() if v.delinquent)

    network = NetworkReport(
        total_stake=total,
        current_validators=len(votes) - delinquent,
        delinquent_validators=delinquent,
        validators=tuple(validators),
        metrics=metrics,
        stake_stats=compute_stake_stats(stakes),
        buckets=bucket_stakes(stakes, cfg.network_buckets),
        breakdowns=build_breakdowns(validators, total, cfg.country_continent),
        infra=infra_concentration(validators, total, cfg.top_asn_count),
        jito=jito_stats(validators, total),
        superminority_voters=superminority_members(validators, total),
    )
    logger.info(
        "network_analyzed",
        total_validators=network.total_validators,
        delinquent_validators=delinquent,
        nakamoto_33=metrics.nakamoto_coefficient_33,
        superminority=metrics.superminority_count,
    )
    return network


def run_decentralization_analysis(
    epoch: EpochInfo,
    sources: Sequence[AuthorityInput],
    *,
    metadata: Mapping[str, ValidatorMetadata] | None = None,
    votes: Mapping[str, VotePerformance] | None = None,
    block_production: Mapping[str, BlockProduction] | None = None,
    config: AnalysisConfig | None = None,
    include_network: bool = True,
    generated_at: str | None = None,
) -> DecentralizationReport:
    """
    Run the full analysis for one snapshot.

    The combined view is built only when more than one authority is given;
    the network view only when vote accounts are supplied and include_network
    is set. All inputs must be complete; a malformed record aborts the run.
    """
    cfg = config or AnalysisConfig()
    sections = [analyze_authority(s, metadata, votes, block_production, cfg) for s in sources]

    combined = None
    if len(sections) > 1:
        combined = combine_authorities(
            {s.key: s.validators for s in sections},
            high_commission_pct=cfg.high_commission_pct,
            jito_commission_cap_bps=cfg.jito_commission_cap_bps,
            top_asn_count=cfg.top_asn_count,
        )

    network = None
    if include_network and votes:
        network = analyze_network(votes, metadata, block_production, cfg)

    return assemble_report(
        epoch,
        sections,
        combined=combined,
        network=network,
        annual_yield_rate=cfg.annual_yield_rate,
        economics_authority=cfg.economics_authority,
        generated_at=generated_at,
    )
