"""
Pytest fixtures for Stakewatch tests: RPC-shaped payload builders and a
clean STAKEWATCH_* environment.
"""

from __future__ import annotations

import pytest

LAMPORTS = 1_000_000_000
U64_MAX = "18446744073709551615"


def _stake_account(
    voter: str,
    sol: float,
    deactivation_epoch: int | str = U64_MAX,
    pubkey: str | None = None,
    activation_epoch: int | str = "500",
) -> dict:
    return {
        "pubkey": pubkey or f"stake-{voter}-{sol}",
        "account": {
            "data": {
                "parsed": {
                    "type": "delegated",
                    "info": {
                        "stake": {
                            "delegation": {
                                "voter": voter,
                                "stake": str(int(round(sol * LAMPORTS))),
                                "activationEpoch": activation_epoch,
                                "deactivationEpoch": deactivation_epoch,
                            }
                        }
                    },
                }
            }
        },
    }


def _empty_account(pubkey: str = "stake-empty") -> dict:
    return {"pubkey": pubkey, "account": {"data": {"parsed": {"type": "initialized", "info": {}}}}}


def _directory_row(vote_identity: str, **fields) -> dict:
    row = {"vote_identity": vote_identity, "identity": f"node-{vote_identity}"}
    row.update(fields)
    return row


def _vote_account(vote_pubkey: str, sol: float, commission: int = 5) -> dict:
    return {
        "votePubkey": vote_pubkey,
        "nodePubkey": f"node-{vote_pubkey}",
        "activatedStake": int(round(sol * LAMPORTS)),
        "commission": commission,
        "lastVote": 290_000_000,
    }


@pytest.fixture
def stake_account():
    """Builder for one jsonParsed getProgramAccounts item (stake given in SOL)."""
    return _stake_account


@pytest.fixture
def empty_account():
    """Builder for an initialized but undelegated stake account."""
    return _empty_account


@pytest.fixture
def directory_row():
    """Builder for a validator directory row."""
    return _directory_row


@pytest.fixture
def vote_account():
    """Builder for one getVoteAccounts entry (stake given in SOL)."""
    return _vote_account


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Unset Stakewatch env vars so each test sees the defaults."""
    for name in (
        "STAKEWATCH_HIGH_COMMISSION_PCT",
        "STAKEWATCH_JITO_COMMISSION_CAP_BPS",
        "STAKEWATCH_ANNUAL_YIELD_RATE",
        "STAKEWATCH_TOP_ASN_COUNT",
        "STAKEWATCH_ECONOMICS_AUTHORITY",
        "STAKEWATCH_DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
