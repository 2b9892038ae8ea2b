"""Command line entry point for the marketing-finance metrics toolkit."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.errors import MarketingMetricsError
from marketing_finance_audit.foundation.data_access import InMemoryDataAccess
from marketing_finance_audit.pandas.results import report_to_dataframes
from marketing_finance_audit.report import MetricFamily, build_marketing_report

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM

# CSV tables written for each metric family
FAMILY_TABLES = {
    MetricFamily.ACQUISITION: ("acquisition", "acquisition_by_channel"),
    MetricFamily.CLV: ("clv", "clv_by_channel"),
    MetricFamily.MRR: ("mrr_snapshots", "mrr_trend"),
    MetricFamily.ATTRIBUTION: ("attribution",),
    MetricFamily.COHORTS: ("cohorts", "cohort_payback"),
}


def _load_dataset(path: Path) -> dict[str, Any]:
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError(
            "Expected a JSON object keyed by record stream "
            "(customers, orders, touchpoints, spend, subscriptions, campaigns)"
        )
    return payload


def _resolve_output_dir(path: Path) -> Path:
    output_dir = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_dir.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output directory {output_dir} must reside within the current working directory"
        )
    return output_dir


def marketing_report_cli(argv: list[str] | None = None) -> int:
    """Compute marketing-finance metrics from a JSON dataset and export CSVs.

    The input file is a JSON object with one list of records per stream
    (``customers``, ``orders``, ``touchpoints``, ``spend``, ``subscriptions``,
    ``campaigns``). One CSV is written per result table of every requested
    metric family, e.g. ``acquisition.csv`` and ``acquisition_by_channel.csv``.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for invalid input or configuration)
    """
    parser = argparse.ArgumentParser(
        description="Compute acquisition, CLV, MRR, attribution and cohort metrics"
    )
    parser.add_argument("input", type=Path, help="Path to JSON dataset")
    parser.add_argument(
        "--evaluation-instant",
        required=True,
        help="Instant the metrics are evaluated at (ISO format, e.g. 2024-12-31T23:59:59)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory for the CSV outputs (must be under the current directory)",
    )
    parser.add_argument(
        "--metric",
        dest="metrics",
        action="append",
        choices=[item.value for item in MetricFamily],
        help="Metric families to compute (repeatable; defaults to all).",
    )
    parser.add_argument(
        "--lookback-days",
        type=int,
        help="Trailing lookback window in days (default: 730)",
    )
    parser.add_argument(
        "--attribution-window-days",
        type=int,
        help="Days after a touchpoint during which orders are attributed (default: 90)",
    )
    parser.add_argument(
        "--assumed-cac",
        type=str,
        help="Assumed acquisition cost per customer (default: 50)",
    )
    parser.add_argument(
        "--cohort-horizon-months",
        type=int,
        help="Last month offset tracked per cohort (default: 12)",
    )
    parser.add_argument(
        "--clv-horizon-years",
        type=int,
        help="Lifetime value projection horizon in years (default: 3)",
    )
    parser.add_argument(
        "--mrr-epoch",
        help="Ignore subscriptions starting before this instant (ISO format)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = MetricsConfig.from_mapping(
            {
                "evaluation_instant": args.evaluation_instant,
                "lookback_days": args.lookback_days,
                "attribution_window_days": args.attribution_window_days,
                "assumed_cac": args.assumed_cac,
                "cohort_horizon_months": args.cohort_horizon_months,
                "clv_horizon_years": args.clv_horizon_years,
                "mrr_epoch": args.mrr_epoch,
            }
        )
        output_dir = _resolve_output_dir(args.output_dir)

        logger.info(f"Loading dataset from {args.input}")
        adapter = InMemoryDataAccess.from_payload(_load_dataset(args.input))

        families = [MetricFamily(m) for m in args.metrics] if args.metrics else list(MetricFamily)
        report = build_marketing_report(adapter, config, families)
    except (MarketingMetricsError, ValueError, OSError) as exc:
        logger.error(f"Cannot compute report: {exc}")
        return 1

    tables = report_to_dataframes(report)
    output_dir.mkdir(parents=True, exist_ok=True)
    for family in families:
        for table in FAMILY_TABLES[family]:
            path = output_dir / f"{table}.csv"
            tables[table].to_csv(path, index=False)
            logger.info(f"Wrote {len(tables[table])} rows to {path}")

    return 0


def main() -> None:  # pragma: no cover - thin wrapper
    raise SystemExit(marketing_report_cli())


if __name__ == "__main__":  # pragma: no cover
    main()
