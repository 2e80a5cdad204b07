"""
Tests for combining several authorities into one validator set.
"""

from __future__ import annotations

import pytest

from stakewatch.analysis_engine.aggregator import ValidatorAggregate
from stakewatch.analysis_engine.combiner import (
    combine_authorities,
    commission_compliance,
    merge_sources,
)
from stakewatch.analysis_engine.concentration import compute_concentration
from stakewatch.analysis_engine.normalizer import ValidatorProfile


def _v(voter: str, stake: float, **profile) -> ValidatorAggregate:
    return ValidatorAggregate(voter=voter, active_stake=stake, profile=ValidatorProfile(**profile))


def _sources():
    return {
        "firep": (
            _v("A", 100, name="Alpha", asn_org="Hetzner", commission=5.0, total_network_stake=1000.0),
            _v("B", 50, asn_org="OVH", commission=12.0, total_network_stake=500.0),
        ),
        "mpa4": (
            _v("C", 200, asn_org="Hetzner", is_jito=True, jito_commission_bps=1200),
            _v("A", 30, name="Alpha-dup", asn_org="Hetzner", commission=5.0),
        ),
    }


def test_merge_sums_stake_per_voter():
    """A voter in two sources appears once with summed stake and per-source split."""
    merged = merge_sources(_sources())
    assert [v.voter for v in merged] == ["C", "A", "B"]
    a = merged[1]
    assert a.active_stake == 130
    assert a.sources == {"firep": 100, "mpa4": 30}
    assert a.profile.name == "Alpha"


def test_metrics_recomputed_from_merged_distribution():
    """Combined metrics equal metrics computed fresh over the merged stakes."""
    view = combine_authorities(_sources())
    expected = compute_concentration([200.0, 130.0, 50.0])
    assert view.total_active_stake == pytest.approx(380.0)
    assert view.metrics.hhi == pytest.approx(expected.hhi)
    assert view.metrics.gini == pytest.approx(expected.gini)
    assert view.metrics.nakamoto_coefficient_33 == 1
    assert view.unique_validators == 3
    assert view.sources == ("firep", "mpa4")


def test_combined_excludes_zero_stake_from_metrics():
    """A voter with only zero active stake stays listed but is not counted."""
    sources = _sources()
    sources["mpa4"] = sources["mpa4"] + (_v("Z", 0),)
    view = combine_authorities(sources)
    assert view.unique_validators == 4
    assert len(view.active_validators) == 3
    assert view.metrics.validator_count == 3


def test_infra_concentration_top_asns():
    """Top ASN share covers the configured number of providers."""
    view = combine_authorities(_sources(), top_asn_count=1)
    assert view.infra.asns.entries[0].name == "Hetzner"
    assert view.infra.top_asn_pct == pytest.approx(330 / 380 * 100)
    assert view.infra.unique_asns == 2
    assert "top1ASNPct" in view.infra.to_dict()


def test_commission_compliance_lists():
    """High commission and Jito over-cap validators are listed; zero stake is ignored."""
    merged = merge_sources(_sources()) + (
        merge_sources({"x": (_v("Q", 0, commission=50.0, is_jito=True, jito_commission_bps=5000),)})
    )
    compliance = commission_compliance(merged, high_commission_pct=10.0, jito_commission_cap_bps=1000)
    assert [e.voter for e in compliance.high_commission] == ["B"]
    assert [e.voter for e in compliance.jito_over_cap] == ["C"]
    assert compliance.jito_over_cap[0].value == 1200
    out = compliance.to_dict()
    assert out["highCommissionCount"] == 1
    assert out["jitoOverCap"][0]["jitoCommission"] == 1200


def test_commission_at_threshold_not_flagged():
    """A commission equal to the threshold is compliant."""
    merged = merge_sources({"s": (_v("A", 10, commission=10.0, is_jito=True, jito_commission_bps=1000),)})
    compliance = commission_compliance(merged, 10.0, 1000)
    assert compliance.high_commission == ()
    assert compliance.jito_over_cap == ()


def test_network_share():
    """Program stake is compared with tracked whole-network stake; none tracked gives None."""
    view = combine_authorities(_sources())
    assert view.network_share.tracked_network_stake == pytest.approx(1500.0)
    assert view.network_share.program_pct_of_tracked == pytest.approx(380 / 1500 * 100)
    untracked = combine_authorities({"s": (_v("A", 10),), "t": (_v("B", 5),)})
    assert untracked.network_share.program_pct_of_tracked is None


def test_combined_to_dict_pct_of_total():
    """Top validators carry their share of combined stake."""
    out = combine_authorities(_sources()).to_dict()
    assert out["activeValidators"] == 3
    first = out["topValidators"][0]
    assert first["voter"] == "C"
    assert first["pctOfTotal"] == pytest.approx(200 / 380 * 100)
    assert first["isJito"] is True
    assert out["foundationVsNetwork"]["sfdpStake"] == pytest.approx(380.0)


def test_combined_values_are_read_only_and_hashable():
    """Per-source splits cannot be mutated after the merge and values hash."""
    view = combine_authorities(_sources())
    a = next(v for v in view.validators if v.voter == "A")
    with pytest.raises(TypeError):
        a.sources["firep"] = 0.0
    with pytest.raises(TypeError):
        view.metrics.top_n_pct[10] = 0.0
    assert hash(a) == hash(merge_sources(_sources())[1])
    assert isinstance(hash(view), int)
