"""
Record normalizer: raw stake accounts and metadata to uniform records.

Converts lamports to SOL exactly once, resolves the deactivating flag from
the exact u64 sentinel, counts empty (undelegated) accounts, and merges
directory metadata, vote accounts and block production into one
ValidatorProfile per voter. Missing metadata degrades to None / False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from stakewatch.analysis_engine.models import (
    BlockProduction,
    NormalizedDelegation,
    RawDelegation,
    ValidatorMetadata,
    VotePerformance,
    lamports_to_sol,
    parse_stake_account,
)
from stakewatch.stakewatch_logging import bind_validator, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ValidatorProfile:
    """
    Merged per-validator metadata.

    Numeric fields are None when no source supplied them; boolean flags
    default to False.
    """

    name: str | None = None
    identity: str | None = None
    commission: float | None = None
    """Vote-account commission when known, else directory commission."""
    version: str | None = None
    delinquent: bool = False
    skip_rate: float | None = None
    leader_slots: int | None = None
    blocks_produced: int | None = None
    country: str | None = None
    city: str | None = None
    asn: str | None = None
    asn_org: str | None = None
    is_jito: bool = False
    jito_commission_bps: int | None = None
    wiz_score: float | None = None
    apy: float | None = None
    superminority: bool = False
    asn_concentration: float | None = None
    city_concentration: float | None = None
    total_network_stake: float | None = None
    """Validator's whole-network activated stake in SOL; None without vote data."""

    @property
    def asn_label(self) -> str | None:
        """Hosting organization when known, else the raw ASN."""
        return self.asn_org or self.asn

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "identity": self.identity,
            "commission": self.commission,
            "version": self.version,
            "delinquent": self.delinquent,
            "skipRate": self.skip_rate,
            "leaderSlots": self.leader_slots,
            "blocksProduced": self.blocks_produced,
            "country": self.country,
            "city": self.city,
            "asn": self.asn,
            "asnOrg": self.asn_org,
            "isJito": self.is_jito,
            "jitoCommission": self.jito_commission_bps,
            "wizScore": self.wiz_score,
            "apy": self.apy,
            "superminority": self.superminority,
            "asnConcentration": self.asn_concentration,
            "cityConcentration": self.city_concentration,
            "totalNetworkStake": self.total_network_stake,
        }


EMPTY_PROFILE = ValidatorProfile()


@dataclass(frozen=True)
class NormalizationResult:
    """Normalized delegations of one stake-account snapshot plus raw counts."""

    delegations: tuple[NormalizedDelegation, ...]
    total_accounts: int
    empty_accounts: int


def normalize_delegation(raw: RawDelegation) -> NormalizedDelegation:
    """Convert one raw delegation: lamports -> SOL, sentinel -> deactivating flag."""
    return NormalizedDelegation(
        voter=raw.voter,
        stake=lamports_to_sol(raw.stake_lamports),
        deactivating=raw.deactivating,
        activation_epoch=raw.activation_epoch,
        stake_account=raw.stake_account,
    )


def normalize_stake_accounts(accounts: Iterable[Mapping[str, Any]]) -> NormalizationResult:
    """
    Normalize getProgramAccounts items.

    Accounts without a delegation are counted as empty and dropped.

    Raises:
        DataFormatError: first malformed delegation (stake, epochs, voter).
    """
    delegations: list[NormalizedDelegation] = []
    total = 0
    empty = 0
    for index, item in enumerate(accounts):
        total += 1
        raw = parse_stake_account(item, index)
        if raw is None:
            empty += 1
            continue
        delegations.append(normalize_delegation(raw))
    logger.debug(
        "stake_accounts_normalized",
        total_accounts=total,
        empty_accounts=empty,
        delegations=len(delegations),
    )
    return NormalizationResult(
        delegations=tuple(delegations),
        total_accounts=total,
        empty_accounts=empty,
    )


def resolve_profile(
    voter: str,
    metadata: Mapping[str, ValidatorMetadata] | None = None,
    votes: Mapping[str, VotePerformance] | None = None,
    block_production: Mapping[str, BlockProduction] | None = None,
) -> ValidatorProfile:
    """
    Merge every metadata source known for a vote account.

    Priority: commission from the vote account over the directory; delinquent
    if either source says so; skip rate from the directory over block
    production. Block production is keyed by node identity, which only the
    directory provides.
    """
    meta = (metadata or {}).get(voter)
    vote = (votes or {}).get(voter)
    blocks = None
    if meta is not None and meta.identity is not None:
        blocks = (block_production or {}).get(meta.identity)

    if meta is None:
        bind_validator(voter, __name__).debug(
            "validator_metadata_missing", has_vote_account=vote is not None
        )
    if meta is None and vote is None:
        return EMPTY_PROFILE

    commission: float | None = None
    if vote is not None and vote.commission is not None:
        commission = float(vote.commission)
    elif meta is not None:
        commission = meta.commission

    skip_rate = meta.skip_rate if meta is not None else None
    if skip_rate is None and blocks is not None:
        skip_rate = blocks.skip_rate

    return ValidatorProfile(
        name=meta.name if meta else None,
        identity=meta.identity if meta else None,
        commission=commission,
        version=meta.version if meta else None,
        delinquent=bool((vote is not None and vote.delinquent) or (meta is not None and meta.delinquent)),
        skip_rate=skip_rate,
        leader_slots=blocks.leader_slots if blocks else None,
        blocks_produced=blocks.blocks_produced if blocks else None,
        country=meta.country if meta else None,
        city=meta.city if meta else None,
        asn=meta.asn if meta else None,
        asn_org=meta.asn_org if meta else None,
        is_jito=meta.is_jito if meta else False,
        jito_commission_bps=meta.jito_commission_bps if meta else None,
        wiz_score=meta.wiz_score if meta else None,
        apy=meta.apy if meta else None,
        superminority=meta.superminority if meta else False,
        asn_concentration=meta.asn_concentration if meta else None,
        city_concentration=meta.city_concentration if meta else None,
        total_network_stake=vote.activated_stake if vote is not None else None,
    )
