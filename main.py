"""
Main entrypoint: build a decentralization report from a snapshot bundle.

Env: STAKEWATCH_DATA_DIR, STAKEWATCH_HIGH_COMMISSION_PCT, STAKEWATCH_JITO_COMMISSION_CAP_BPS,
STAKEWATCH_ANNUAL_YIELD_RATE, STAKEWATCH_TOP_ASN_COUNT, STAKEWATCH_ECONOMICS_AUTHORITY,
LOG_LEVEL, LOG_FORMAT.

Equivalent: python -m stakewatch.tools.build_report --input snapshot.json
"""

from stakewatch.tools.build_report import main

if __name__ == "__main__":
    raise SystemExit(main())
