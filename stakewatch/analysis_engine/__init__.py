"""
Analysis engine package: stake decentralization metrics.

Consumes already-fetched stake accounts, validator directory rows, vote
accounts and block production, and produces a DecentralizationReport:
per-authority concentration metrics, dimensional breakdowns and stake
buckets, a combined cross-authority view, and an optional network view.
"""

from stakewatch.analysis_engine.models import (
    BlockProduction,
    EpochInfo,
    NormalizedDelegation,
    RawDelegation,
    ValidatorMetadata,
    VotePerformance,
    build_block_production_index,
    build_metadata_index,
    build_vote_index,
    parse_stake_account,
)
from stakewatch.analysis_engine.normalizer import (
    NormalizationResult,
    ValidatorProfile,
    normalize_delegation,
    normalize_stake_accounts,
    resolve_profile,
)
from stakewatch.analysis_engine.aggregator import (
    ValidatorAggregate,
    aggregate_delegations,
)
from stakewatch.analysis_engine.concentration import (
    ConcentrationMetrics,
    StakeStats,
    compute_concentration,
    compute_stake_stats,
    gini_coefficient,
    herfindahl_hirschman_index,
    nakamoto_coefficient,
    superminority_count,
    top_n_pct,
)
from stakewatch.analysis_engine.breakdown import (
    AUTHORITY_STAKE_BUCKETS,
    NETWORK_STAKE_BUCKETS,
    BucketTally,
    CategoryTally,
    DimensionalBreakdown,
    StakeBucket,
    bucket_stakes,
    build_breakdown,
    build_continent_breakdown,
)
from stakewatch.analysis_engine.combiner import (
    CombinedValidator,
    CombinedView,
    combine_authorities,
)
from stakewatch.analysis_engine.report import (
    AuthorityReport,
    DecentralizationReport,
    NetworkReport,
    assemble_report,
)
from stakewatch.analysis_engine.pipeline import (
    AnalysisConfig,
    AuthorityInput,
    analyze_authority,
    analyze_network,
    run_decentralization_analysis,
)

__all__ = [
    "BlockProduction",
    "EpochInfo",
    "NormalizedDelegation",
    "RawDelegation",
    "ValidatorMetadata",
    "VotePerformance",
    "build_block_production_index",
    "build_metadata_index",
    "build_vote_index",
    "parse_stake_account",
    "NormalizationResult",
    "ValidatorProfile",
    "normalize_delegation",
    "normalize_stake_accounts",
    "resolve_profile",
    "ValidatorAggregate",
    "aggregate_delegations",
    "ConcentrationMetrics",
    "StakeStats",
    "compute_concentration",
    "compute_stake_stats",
    "gini_coefficient",
    "herfindahl_hirschman_index",
    "nakamoto_coefficient",
    "superminority_count",
    "top_n_pct",
    "AUTHORITY_STAKE_BUCKETS",
    "NETWORK_STAKE_BUCKETS",
    "BucketTally",
    "CategoryTally",
    "DimensionalBreakdown",
    "StakeBucket",
    "bucket_stakes",
    "build_breakdown",
    "build_continent_breakdown",
    "CombinedValidator",
    "CombinedView",
    "combine_authorities",
    "AuthorityReport",
    "DecentralizationReport",
    "NetworkReport",
    "assemble_report",
    "AnalysisConfig",
    "AuthorityInput",
    "analyze_authority",
    "analyze_network",
    "run_decentralization_analysis",
]
