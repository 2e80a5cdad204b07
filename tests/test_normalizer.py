"""
Tests for stake account normalization and per-validator profile resolution.
"""

from __future__ import annotations

import pytest

from stakewatch.analysis_engine.models import (
    BlockProduction,
    RawDelegation,
    ValidatorMetadata,
    VotePerformance,
    build_block_production_index,
    build_metadata_index,
    build_vote_index,
    parse_u64,
)
from stakewatch.analysis_engine.normalizer import (
    EMPTY_PROFILE,
    normalize_stake_accounts,
    resolve_profile,
)
from stakewatch.core.exceptions import DataFormatError, StakewatchError

VOTER_A = "VoteA111111111111111111111111111111111111111"
VOTER_B = "VoteB111111111111111111111111111111111111111"


def _delegation(**overrides) -> dict:
    d = {
        "voter": VOTER_A,
        "stake": "1500000000",
        "activationEpoch": "600",
        "deactivationEpoch": "18446744073709551615",
    }
    d.update(overrides)
    return d


def test_lamports_converted_to_sol(stake_account):
    """1.5e9 lamports becomes 1.5 SOL on the normalized record."""
    result = normalize_stake_accounts([stake_account(VOTER_A, 1.5)])
    assert result.total_accounts == 1
    assert result.empty_accounts == 0
    (d,) = result.delegations
    assert d.voter == VOTER_A
    assert d.stake == pytest.approx(1.5)
    assert d.deactivating is False


def test_sentinel_as_string_and_int_is_not_deactivating():
    """u64::MAX as decimal string or int means the stake is not deactivating."""
    as_str = RawDelegation.from_rpc_delegation(_delegation())
    as_int = RawDelegation.from_rpc_delegation(_delegation(deactivationEpoch=18446744073709551615))
    assert as_str.deactivating is False
    assert as_int.deactivating is False


def test_any_other_epoch_is_deactivating(stake_account):
    """A concrete deactivation epoch marks the delegation deactivating."""
    result = normalize_stake_accounts([stake_account(VOTER_A, 10, deactivation_epoch="612")])
    assert result.delegations[0].deactivating is True
    near_max = RawDelegation.from_rpc_delegation(_delegation(deactivationEpoch="18446744073709551614"))
    assert near_max.deactivating is True


def test_rounded_float_sentinel_rejected():
    """A sentinel already rounded to a float cannot be compared exactly and is rejected."""
    with pytest.raises(DataFormatError) as exc:
        RawDelegation.from_rpc_delegation(_delegation(deactivationEpoch=1.8446744073709552e19), "acct1")
    assert exc.value.field == "deactivationEpoch"
    assert exc.value.record == "acct1"


def test_empty_accounts_counted_and_dropped(stake_account, empty_account):
    """Undelegated accounts count toward total and empty, never toward delegations."""
    result = normalize_stake_accounts(
        [stake_account(VOTER_A, 5), empty_account("e1"), {"pubkey": "e2"}, stake_account(VOTER_B, 7)]
    )
    assert result.total_accounts == 4
    assert result.empty_accounts == 2
    assert [d.voter for d in result.delegations] == [VOTER_A, VOTER_B]


def test_malformed_stake_raises_with_record(stake_account):
    """Non-numeric stake aborts normalization and names the stake account."""
    bad = stake_account(VOTER_A, 1, pubkey="badacct")
    bad["account"]["data"]["parsed"]["info"]["stake"]["delegation"]["stake"] = "12abc"
    with pytest.raises(DataFormatError) as exc:
        normalize_stake_accounts([stake_account(VOTER_B, 1), bad])
    assert exc.value.record == "badacct"
    assert exc.value.field == "stake"
    assert isinstance(exc.value, StakewatchError)
    assert isinstance(exc.value, ValueError)


def test_negative_and_missing_fields_rejected():
    """Negative stake and a missing voter are data format errors."""
    with pytest.raises(DataFormatError, match="negative"):
        RawDelegation.from_rpc_delegation(_delegation(stake=-5))
    with pytest.raises(DataFormatError, match="voter"):
        RawDelegation.from_rpc_delegation(_delegation(voter=None))
    with pytest.raises(DataFormatError):
        RawDelegation.from_rpc_delegation(_delegation(stake=None))


def test_parse_u64_accepts_int_and_digit_strings_only():
    """parse_u64 takes ints, ASCII digit strings and exact integral floats."""
    assert parse_u64(42, record=None, field="x") == 42
    assert parse_u64(" 42 ", record=None, field="x") == 42
    assert parse_u64(42.0, record=None, field="x") == 42
    for bad in ("4.2", "", "١٢", True, 4.5, [], None):
        with pytest.raises(DataFormatError):
            parse_u64(bad, record=None, field="x")


def test_profile_without_metadata_is_empty():
    """A voter absent from every source gets the empty profile."""
    profile = resolve_profile(VOTER_A, {}, {}, {})
    assert profile is EMPTY_PROFILE
    assert profile.name is None
    assert profile.country is None
    assert profile.is_jito is False
    assert profile.total_network_stake is None


def test_vote_commission_preferred_over_directory(directory_row, vote_account):
    """Vote-account commission wins; directory commission is the fallback."""
    metadata = build_metadata_index(
        [directory_row(VOTER_A, commission=8, name="Alpha"), directory_row(VOTER_B, commission=7)]
    )
    votes = build_vote_index({"current": [vote_account(VOTER_A, 1000, commission=5)], "delinquent": []})
    a = resolve_profile(VOTER_A, metadata, votes)
    b = resolve_profile(VOTER_B, metadata, votes)
    assert a.commission == 5.0
    assert a.name == "Alpha"
    assert a.total_network_stake == pytest.approx(1000)
    assert b.commission == 7.0
    assert b.total_network_stake is None


def test_delinquent_if_either_source_says_so(directory_row, vote_account):
    """Delinquency from the vote list or the directory flags the profile."""
    metadata = build_metadata_index([directory_row(VOTER_B, delinquent=True)])
    votes = build_vote_index({"current": [vote_account(VOTER_B, 10)], "delinquent": [vote_account(VOTER_A, 10)]})
    assert resolve_profile(VOTER_A, metadata, votes).delinquent is True
    assert resolve_profile(VOTER_B, metadata, votes).delinquent is True


def test_delinquent_list_overrides_current(vote_account):
    """An account in both lists is indexed as delinquent."""
    votes = build_vote_index(
        {"current": [vote_account(VOTER_A, 10)], "delinquent": [vote_account(VOTER_A, 10)]}
    )
    assert votes[VOTER_A].delinquent is True


def test_skip_rate_falls_back_to_block_production(directory_row):
    """Without a directory skip rate, block production by node identity is used."""
    metadata = build_metadata_index(
        [directory_row(VOTER_A, identity="NodeA"), directory_row(VOTER_B, identity="NodeB", wiz_skip_rate=2.5)]
    )
    blocks = build_block_production_index(
        {"value": {"byIdentity": {"NodeA": [100, 90], "NodeB": [100, 50]}}}
    )
    a = resolve_profile(VOTER_A, metadata, None, blocks)
    b = resolve_profile(VOTER_B, metadata, None, blocks)
    assert a.skip_rate == pytest.approx(10.0)
    assert a.leader_slots == 100
    assert a.blocks_produced == 90
    assert b.skip_rate == pytest.approx(2.5)


def test_block_production_bad_pair_raises():
    """byIdentity entries must be [slots, blocks] pairs."""
    with pytest.raises(DataFormatError):
        build_block_production_index({"value": {"byIdentity": {"NodeA": [100]}}})


def test_block_skip_rate_zero_without_slots():
    """No leader slots means a 0 skip rate, not a division error."""
    assert BlockProduction("NodeA", 0, 0).skip_rate == 0.0


def test_directory_entry_field_mapping(directory_row):
    """Directory keys map onto ValidatorMetadata fields."""
    meta = ValidatorMetadata.from_directory_entry(
        directory_row(
            VOTER_A,
            ip_country="Germany",
            ip_city="Frankfurt",
            ip_asn="AS24940",
            ip_org="Hetzner Online GmbH",
            is_jito=True,
            jito_commission_bps=800,
            superminority_penalty=1.2,
            total_apy=7.1,
            version="1.18.22",
        )
    )
    assert meta.country == "Germany"
    assert meta.city == "Frankfurt"
    assert meta.asn == "AS24940"
    assert meta.asn_org == "Hetzner Online GmbH"
    assert meta.is_jito is True
    assert meta.jito_commission_bps == 800
    assert meta.superminority is True
    assert meta.apy == pytest.approx(7.1)
    with pytest.raises(DataFormatError):
        ValidatorMetadata.from_directory_entry({"name": "no vote identity"})


def test_vote_activated_stake_in_sol(vote_account):
    """activatedStake lamports are exposed as SOL."""
    vote = VotePerformance.from_vote_account(vote_account(VOTER_A, 2.0))
    assert vote.activated_stake_lamports == 2_000_000_000
    assert vote.activated_stake == pytest.approx(2.0)


@pytest.mark.parametrize(
    "build, payload",
    [
        (build_metadata_index, ["row"]),
        (build_metadata_index, {"vote_identity": "A"}),
        (build_vote_index, "current"),
        (build_vote_index, {"current": ["notanobject"]}),
        (build_vote_index, {"current": {"votePubkey": "A"}}),
        (build_vote_index, {"delinquent": [42]}),
        (build_block_production_index, "value"),
        (build_block_production_index, {"value": "byIdentity"}),
        (build_block_production_index, {"value": {"byIdentity": ["NodeA", 100, 90]}}),
    ],
)
def test_non_object_payloads_raise_data_format_error(build, payload):
    """Rows and sections of the wrong JSON shape are data format errors, not crashes."""
    with pytest.raises(DataFormatError):
        build(payload)


def test_non_object_vote_entry_names_position():
    """A vote entry that is not an object is reported by its list position."""
    with pytest.raises(DataFormatError) as exc:
        build_vote_index({"current": [{"votePubkey": VOTER_A, "activatedStake": 1}, "oops"]})
    assert exc.value.record == 1
    assert exc.value.reason == "not an object"


def test_absent_sections_give_empty_indexes():
    """Missing optional sections parse to empty indexes."""
    assert build_vote_index(None) == {}
    assert build_vote_index({}) == {}
    assert build_block_production_index(None) == {}
    assert build_block_production_index({"value": {}}) == {}
    assert build_metadata_index([]) == {}


def test_unparsable_directory_number_raises(directory_row):
    """A present commission that is not a number is rejected, not dropped to None."""
    with pytest.raises(DataFormatError) as exc:
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, commission="12%"))
    assert exc.value.record == VOTER_A
    assert exc.value.field == "commission"
    with pytest.raises(DataFormatError):
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, wiz_skip_rate="n/a"))
    with pytest.raises(DataFormatError):
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, total_apy=float("nan")))


def test_numeric_strings_and_nulls_accepted(directory_row):
    """Numeric strings parse; explicit nulls stay None."""
    meta = ValidatorMetadata.from_directory_entry(
        directory_row(VOTER_A, commission="7", jito_commission_bps="800", wiz_score=None)
    )
    assert meta.commission == 7.0
    assert meta.jito_commission_bps == 800
    assert meta.wiz_score is None


def test_fractional_integer_fields_not_truncated(directory_row, vote_account):
    """Integer fields reject fractional values instead of truncating them."""
    with pytest.raises(DataFormatError) as exc:
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, jito_commission_bps=5.5))
    assert exc.value.field == "jito_commission_bps"
    row = vote_account(VOTER_A, 10)
    row["commission"] = 5.5
    with pytest.raises(DataFormatError):
        VotePerformance.from_vote_account(row)
    row["commission"] = 5.0
    assert VotePerformance.from_vote_account(row).commission == 5


def test_boolean_flags_parse_strictly(directory_row):
    """Flags accept booleans and "true"/"false"; the string "false" is False."""
    assert ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, is_jito="false")).is_jito is False
    assert ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, is_jito="True")).is_jito is True
    assert ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, delinquent=False)).delinquent is False
    assert ValidatorMetadata.from_directory_entry(directory_row(VOTER_A)).is_jito is False
    with pytest.raises(DataFormatError):
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, is_jito="yes"))
    with pytest.raises(DataFormatError):
        ValidatorMetadata.from_directory_entry(directory_row(VOTER_A, delinquent=1))
