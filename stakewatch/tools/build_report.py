"""
Build a decentralization report from a fetched snapshot bundle.

The bundle is a JSON object written by the fetch step:

    {
      "epochInfo": {...getEpochInfo result...},
      "authorities": {"firep": {"authority": "...", "label": "...", "stakeAccounts": [...]}},
      "validators": [...validator directory rows...],          (optional)
      "voteAccounts": {"current": [...], "delinquent": [...]}, (optional)
      "blockProduction": {...getBlockProduction result...}     (optional)
    }

Writes the report to --output (default <data-dir>/latest.json) and a
per-epoch copy snapshot-<epoch>.json. Nothing is written if any input is
malformed.

Usage (from project root):

    python -m stakewatch.tools.build_report --input data/raw/snapshot.json
"""

from __future__ import annotations

import argparse
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from stakewatch.analysis_engine import (
    AnalysisConfig,
    AuthorityInput,
    DecentralizationReport,
    EpochInfo,
    build_block_production_index,
    build_metadata_index,
    build_vote_index,
    run_decentralization_analysis,
)
from stakewatch.config import get_settings
from stakewatch.config.env import DEFAULT_AUTHORITIES
from stakewatch.core.exceptions import DataFormatError
from stakewatch.stakewatch_logging import configure_logging, get_logger

logger = get_logger(__name__)


def _authority_inputs(raw: Any) -> list[AuthorityInput]:
    if not isinstance(raw, Mapping) or not raw:
        raise DataFormatError("bundle", "authorities", raw, reason="missing or empty")
    sources: list[AuthorityInput] = []
    for key, entry in raw.items():
        if not isinstance(entry, Mapping) or not isinstance(entry.get("stakeAccounts"), list):
            raise DataFormatError(key, "stakeAccounts", None, reason="missing")
        defaults = DEFAULT_AUTHORITIES.get(key, {})
        sources.append(
            AuthorityInput(
                key=key,
                label=entry.get("label") or defaults.get("label") or key,
                stake_accounts=entry["stakeAccounts"],
                authority=entry.get("authority") or defaults.get("authority"),
            )
        )
    return sources


def build_report_from_bundle(
    bundle: Mapping[str, Any],
    *,
    config: AnalysisConfig | None = None,
    include_network: bool = True,
    generated_at: str | None = None,
) -> DecentralizationReport:
    """
    Parse a snapshot bundle and run the analysis.

    Raises:
        DataFormatError: missing sections or malformed records.
    """
    epoch_raw = bundle.get("epochInfo")
    if not isinstance(epoch_raw, Mapping):
        raise DataFormatError("bundle", "epochInfo", epoch_raw, reason="missing")
    return run_decentralization_analysis(
        EpochInfo.from_rpc(epoch_raw),
        _authority_inputs(bundle.get("authorities")),
        metadata=build_metadata_index(bundle.get("validators") or []),
        votes=build_vote_index(bundle.get("voteAccounts")),
        block_production=build_block_production_index(bundle.get("blockProduction")),
        config=config or get_settings().analysis_config(),
        include_network=include_network,
        generated_at=generated_at,
    )


def write_report(
    report: DecentralizationReport,
    output: Path,
    history_dir: Path | None = None,
) -> list[Path]:
    """
    Serialize once, then write the per-epoch snapshot (optional) and latest.

    Latest is written last. Each file goes to a sibling .tmp and is renamed
    into place.
    """
    payload = json.dumps(report.to_dict(), indent=2)
    targets: list[Path] = []
    if history_dir is not None:
        targets.append(history_dir / f"snapshot-{report.epoch.epoch}.json")
    targets.append(output)
    for path in targets:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)
    return targets


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Build a stake decentralization report from a snapshot bundle")
    ap.add_argument("--input", type=Path, required=True, help="Snapshot bundle JSON")
    ap.add_argument("--output", type=Path, default=None, help="Report path (default: <data-dir>/latest.json)")
    ap.add_argument("--data-dir", type=Path, default=None, help="Directory for latest and per-epoch snapshots")
    ap.add_argument("--no-history", action="store_true", help="Do not write snapshot-<epoch>.json")
    ap.add_argument("--no-network", action="store_true", help="Skip the network-wide section")
    args = ap.parse_args(argv)

    try:
        settings = get_settings()
        configure_logging(settings.log_level, settings.log_format)
        data_dir = args.data_dir or settings.data_dir
        output = args.output or data_dir / "latest.json"
        bundle = json.loads(args.input.read_text(encoding="utf-8"))
        if not isinstance(bundle, Mapping):
            raise DataFormatError(str(args.input), "bundle", type(bundle).__name__, reason="not an object")
        report = build_report_from_bundle(
            bundle,
            config=settings.analysis_config(),
            include_network=not args.no_network,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )
    except DataFormatError as e:
        logger.error("build_report_bad_input", record=e.record, field=e.field, error=str(e))
        return 1
    except (OSError, json.JSONDecodeError, ValueError) as e:
        logger.error("build_report_failed", input=str(args.input), error=str(e))
        return 1

    try:
        written = write_report(report, output, None if args.no_history else data_dir)
    except OSError as e:
        logger.error("build_report_write_failed", output=str(output), error=str(e))
        return 1
    logger.info(
        "build_report_saved",
        epoch=report.epoch.epoch,
        authorities=list(report.authorities),
        paths=[str(p) for p in written],
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
