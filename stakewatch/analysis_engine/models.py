"""
Data models for analysis engine input.

Typed records for the collaborator payloads the engine consumes: stake
delegations (getProgramAccounts, jsonParsed), validator directory rows,
vote accounts, block production and epoch info. Parsing is structural;
no aggregation or scoring happens here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from stakewatch.core.exceptions import DataFormatError

LAMPORTS_PER_SOL = 1_000_000_000
# deactivationEpoch of a stake account that is not deactivating (u64::MAX)
NOT_DEACTIVATING_EPOCH = 18446744073709551615
# Largest integer a float holds exactly
_MAX_EXACT_FLOAT_INT = 2**53


def lamports_to_sol(lamports: int) -> float:
    return lamports / LAMPORTS_PER_SOL


def parse_u64(value: Any, *, record: str | int | None, field: str) -> int:
    """
    Parse an integer field that may arrive as int or decimal string.

    Floats are accepted only when integral and exactly representable;
    anything larger was already rounded by a JSON decoder and is rejected.
    """
    if isinstance(value, bool):
        raise DataFormatError(record, field, value)
    if isinstance(value, int):
        out = value
    elif isinstance(value, str):
        text = value.strip()
        if not (text.isascii() and text.isdigit()):
            raise DataFormatError(record, field, value)
        out = int(text)
    elif isinstance(value, float):
        if not value.is_integer() or abs(value) > _MAX_EXACT_FLOAT_INT:
            raise DataFormatError(record, field, value, reason="not an exact integer")
        out = int(value)
    else:
        raise DataFormatError(record, field, value)
    if out < 0:
        raise DataFormatError(record, field, value, reason="negative")
    return out


def _optional_float(value: Any, *, record: str | None, field: str) -> float | None:
    """None when absent; a present value must be a finite number or numeric string."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise DataFormatError(record, field, value)
    try:
        out = float(value)
    except ValueError:
        raise DataFormatError(record, field, value) from None
    if not math.isfinite(out):
        raise DataFormatError(record, field, value, reason="not finite")
    return out


def _optional_int(value: Any, *, record: str | None, field: str) -> int | None:
    """None when absent; fractional floats are rejected rather than truncated."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise DataFormatError(record, field, value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise DataFormatError(record, field, value, reason="not an integer")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isascii() and digits.isdigit():
            return int(text)
    raise DataFormatError(record, field, value)


def _optional_bool(value: Any, *, record: str | None, field: str) -> bool:
    """Absent means False; accepts booleans and the strings true/false only."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise DataFormatError(record, field, value)


def _require_mapping(value: Any, *, record: str | int | None, field: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DataFormatError(record, field, value, reason="not an object")
    return value

def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class RawDelegation:
    """
    One stake account's delegation as reported by the stake program.

    Stake stays in lamports here; conversion to SOL happens once, in the
    normalizer.
    """

    stake_lamports: int
    voter: str
    deactivation_epoch: int
    activation_epoch: int
    stake_account: str | None = None

    @property
    def deactivating(self) -> bool:
        """True unless deactivationEpoch is exactly u64::MAX."""
        return self.deactivation_epoch != NOT_DEACTIVATING_EPOCH

    @classmethod
    def from_rpc_delegation(
        cls,
        delegation: Mapping[str, Any],
        stake_account: str | None = None,
        *,
        index: int | None = None,
    ) -> "RawDelegation":
        """Build from a jsonParsed `info.stake.delegation` object."""
        record = stake_account if stake_account is not None else index
        if not isinstance(delegation, Mapping):
            raise DataFormatError(record, "delegation", delegation, reason="not an object")
        voter = _optional_str(delegation.get("voter"))
        if voter is None:
            raise DataFormatError(record, "voter", delegation.get("voter"), reason="missing")
        return cls(
            stake_lamports=parse_u64(delegation.get("stake"), record=record, field="stake"),
            voter=voter,
            deactivation_epoch=parse_u64(
                delegation.get("deactivationEpoch"), record=record, field="deactivationEpoch"
            ),
            activation_epoch=parse_u64(
                delegation.get("activationEpoch"), record=record, field="activationEpoch"
            ),
            stake_account=stake_account,
        )


def parse_stake_account(item: Mapping[str, Any], index: int) -> RawDelegation | None:
    """
    Extract the delegation from a getProgramAccounts (jsonParsed) item.

    Returns None for an empty account: initialized but never delegated, or
    missing the parsed stake section entirely.
    """
    pubkey = _optional_str(item.get("pubkey")) if isinstance(item, Mapping) else None
    account = item.get("account") if isinstance(item, Mapping) else None
    data = (account or {}).get("data") if isinstance(account, Mapping) else None
    parsed = data.get("parsed") if isinstance(data, Mapping) else None
    info = parsed.get("info") if isinstance(parsed, Mapping) else None
    stake = info.get("stake") if isinstance(info, Mapping) else None
    delegation = stake.get("delegation") if isinstance(stake, Mapping) else None
    if delegation is None:
        return None
    return RawDelegation.from_rpc_delegation(delegation, pubkey, index=index)


@dataclass(frozen=True)
class NormalizedDelegation:
    """A delegation with stake in SOL and the deactivating flag resolved."""

    voter: str
    stake: float
    deactivating: bool
    activation_epoch: int
    stake_account: str | None = None


@dataclass(frozen=True)
class ValidatorMetadata:
    """
    Validator directory row (name, geography, software, Jito participation).

    Every field except vote_identity is optional; a missing row is legal.
    """

    vote_identity: str
    identity: str | None = None
    name: str | None = None
    commission: float | None = None
    version: str | None = None
    country: str | None = None
    city: str | None = None
    asn: str | None = None
    asn_org: str | None = None
    is_jito: bool = False
    jito_commission_bps: int | None = None
    delinquent: bool = False
    skip_rate: float | None = None
    wiz_score: float | None = None
    apy: float | None = None
    superminority: bool = False
    asn_concentration: float | None = None
    city_concentration: float | None = None
    stake_weight: float | None = None

    @classmethod
    def from_directory_entry(cls, entry: Mapping[str, Any], index: int | None = None) -> "ValidatorMetadata":
        """
        Build from a validator directory (stakewiz-style) row.

        Absent fields become None / False; present fields that do not parse
        raise DataFormatError naming the vote identity.
        """
        entry = _require_mapping(entry, record=index, field="validator")
        vote_identity = _optional_str(entry.get("vote_identity"))
        if vote_identity is None:
            raise DataFormatError(index, "vote_identity", entry.get("vote_identity"), reason="missing")

        def number(key: str) -> float | None:
            return _optional_float(entry.get(key), record=vote_identity, field=key)

        penalty = number("superminority_penalty")
        apy_key = "total_apy" if entry.get("total_apy") is not None else "apy_estimate"
        asn = entry.get("asn")
        if asn is None:
            asn = entry.get("ip_asn")
        return cls(
            vote_identity=vote_identity,
            identity=_optional_str(entry.get("identity")),
            name=_optional_str(entry.get("name")),
            commission=number("commission"),
            version=_optional_str(entry.get("version")),
            country=_optional_str(entry.get("ip_country")),
            city=_optional_str(entry.get("ip_city")),
            asn=_optional_str(asn),
            asn_org=_optional_str(entry.get("ip_org")),
            is_jito=_optional_bool(entry.get("is_jito"), record=vote_identity, field="is_jito"),
            jito_commission_bps=_optional_int(
                entry.get("jito_commission_bps"), record=vote_identity, field="jito_commission_bps"
            ),
            delinquent=_optional_bool(entry.get("delinquent"), record=vote_identity, field="delinquent"),
            skip_rate=number("wiz_skip_rate"),
            wiz_score=number("wiz_score"),
            apy=number(apy_key),
            superminority=penalty is not None and penalty > 0,
            asn_concentration=number("asn_concentration"),
            city_concentration=number("city_concentration"),
            stake_weight=number("stake_weight"),
        )


def build_metadata_index(entries: Iterable[Mapping[str, Any]]) -> dict[str, ValidatorMetadata]:
    """Key directory rows by vote identity; later rows win on duplicates."""
    if isinstance(entries, (Mapping, str, bytes)):
        raise DataFormatError("bundle", "validators", type(entries).__name__, reason="not a list")
    index: dict[str, ValidatorMetadata] = {}
    for position, entry in enumerate(entries):
        meta = ValidatorMetadata.from_directory_entry(entry, position)
        index[meta.vote_identity] = meta
    return index


@dataclass(frozen=True)
class VotePerformance:
    """Vote account state from getVoteAccounts."""

    vote_pubkey: str
    commission: int | None
    activated_stake_lamports: int
    last_vote: int | None = None
    delinquent: bool = False

    @property
    def activated_stake(self) -> float:
        """Activated stake in SOL."""
        return lamports_to_sol(self.activated_stake_lamports)

    @classmethod
    def from_vote_account(
        cls,
        item: Mapping[str, Any],
        delinquent: bool = False,
        *,
        index: int | None = None,
    ) -> "VotePerformance":
        item = _require_mapping(item, record=index, field="voteAccount")
        vote_pubkey = _optional_str(item.get("votePubkey"))
        if vote_pubkey is None:
            raise DataFormatError(index, "votePubkey", item.get("votePubkey"), reason="missing")
        activated = item.get("activatedStake")
        return cls(
            vote_pubkey=vote_pubkey,
            commission=_optional_int(item.get("commission"), record=vote_pubkey, field="commission"),
            activated_stake_lamports=(
                0 if activated is None
                else parse_u64(activated, record=vote_pubkey, field="activatedStake")
            ),
            last_vote=_optional_int(item.get("lastVote"), record=vote_pubkey, field="lastVote"),
            delinquent=delinquent,
        )


def build_vote_index(vote_accounts: Mapping[str, Any] | None) -> dict[str, VotePerformance]:
    """
    Key getVoteAccounts output by vote pubkey.

    Accounts listed under `delinquent` are flagged delinquent even if they
    also appear under `current`.
    """
    index: dict[str, VotePerformance] = {}
    if vote_accounts is None:
        return index
    vote_accounts = _require_mapping(vote_accounts, record="bundle", field="voteAccounts")
    for group, delinquent in (("current", False), ("delinquent", True)):
        items = vote_accounts.get(group)
        if items is None:
            continue
        if not isinstance(items, list):
            raise DataFormatError("voteAccounts", group, type(items).__name__, reason="not a list")
        for position, item in enumerate(items):
            vote = VotePerformance.from_vote_account(item, delinquent, index=position)
            index[vote.vote_pubkey] = vote
    return index


@dataclass(frozen=True)
class BlockProduction:
    """Leader slots vs produced blocks for one validator identity."""

    identity: str
    leader_slots: int
    blocks_produced: int

    @property
    def skip_rate(self) -> float:
        """Percentage of leader slots without a produced block."""
        if self.leader_slots <= 0:
            return 0.0
        return (self.leader_slots - self.blocks_produced) / self.leader_slots * 100


def build_block_production_index(result: Mapping[str, Any] | None) -> dict[str, BlockProduction]:
    """Parse getBlockProduction `value.byIdentity` ({identity: [slots, blocks]})."""
    index: dict[str, BlockProduction] = {}
    if result is None:
        return index
    result = _require_mapping(result, record="bundle", field="blockProduction")
    value = result.get("value")
    if value is None:
        return index
    value = _require_mapping(value, record="blockProduction", field="value")
    by_identity = value.get("byIdentity")
    if by_identity is None:
        return index
    by_identity = _require_mapping(by_identity, record="blockProduction", field="byIdentity")
    for identity, pair in by_identity.items():
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise DataFormatError(identity, "byIdentity", pair, reason="not a [slots, blocks] pair")
        index[identity] = BlockProduction(
            identity=identity,
            leader_slots=parse_u64(pair[0], record=identity, field="leaderSlots"),
            blocks_produced=parse_u64(pair[1], record=identity, field="blocksProduced"),
        )
    return index


@dataclass(frozen=True)
class EpochInfo:
    """Epoch position at snapshot time (getEpochInfo)."""

    epoch: int
    absolute_slot: int
    slot_index: int = 0
    slots_in_epoch: int = 0

    @property
    def epoch_pct(self) -> float:
        """Epoch completion as a percentage; 0 when slots_in_epoch is unknown."""
        if self.slots_in_epoch <= 0:
            return 0.0
        return self.slot_index / self.slots_in_epoch * 100

    @classmethod
    def from_rpc(cls, result: Mapping[str, Any]) -> "EpochInfo":
        return cls(
            epoch=parse_u64(result.get("epoch"), record="epochInfo", field="epoch"),
            absolute_slot=parse_u64(result.get("absoluteSlot"), record="epochInfo", field="absoluteSlot"),
            slot_index=parse_u64(result.get("slotIndex", 0), record="epochInfo", field="slotIndex"),
            slots_in_epoch=parse_u64(result.get("slotsInEpoch", 0), record="epochInfo", field="slotsInEpoch"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "epoch": self.epoch,
            "slot": self.absolute_slot,
            "slotIndex": self.slot_index,
            "slotsInEpoch": self.slots_in_epoch,
            "epochPct": self.epoch_pct,
        }
