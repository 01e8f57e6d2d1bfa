from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import date

from dotenv import find_dotenv, load_dotenv

from telegram_ads_stats.config import ReportConfig, normalize_month_key
from telegram_ads_stats.errors import (
    ExtractionError,
    ProfileSessionError,
    ReconciliationAmbiguity,
    SinkWriteError,
)
from telegram_ads_stats.pipeline import RunResult, run_with_profile


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Telegram Ads monthly statistics export")
    parser.add_argument(
        "--month",
        dest="source_key",
        help="Reporting month in YYYYMM format (default: REPORT_MONTH or current month).",
    )
    parser.add_argument(
        "--profile-id",
        dest="profile_id",
        help="AdsPower profile id (default: ADSPOWER_PROFILE_ID).",
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        help="Directory that will receive the workbook (default: OUTPUT_DIR or ./exports).",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum simultaneous detail fetches per batch.",
    )
    parser.add_argument(
        "--inter-batch-delay-ms",
        dest="inter_batch_delay_ms",
        type=int,
        help="Pause between detail batches in milliseconds.",
    )
    parser.add_argument(
        "--fetch-timeout-ms",
        dest="fetch_timeout_ms",
        type=int,
        help="Abort a single detail fetch after this many milliseconds.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail the run when a detail dataset matches more than one summary row.",
    )
    parser.add_argument(
        "--run-date",
        dest="run_date",
        help="Date stamped into the workbook filename, YYYY-MM-DD (default: today).",
    )
    return parser


def _parse_run_date(raw: str | None) -> date:
    if not raw:
        return date.today()
    return date.fromisoformat(raw)


def _apply_cli_overrides(config: ReportConfig, args: argparse.Namespace) -> ReportConfig:
    overrides: dict[str, object] = {}
    if args.source_key:
        overrides["source_key"] = normalize_month_key(args.source_key)
    if args.profile_id:
        overrides["adspower_profile_id"] = args.profile_id.strip()
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.concurrency is not None:
        overrides["concurrency_limit"] = max(1, int(args.concurrency))
    if args.inter_batch_delay_ms is not None:
        overrides["inter_batch_delay_ms"] = max(0, int(args.inter_batch_delay_ms))
    if args.fetch_timeout_ms is not None:
        overrides["per_fetch_timeout_ms"] = max(1, int(args.fetch_timeout_ms))
    if args.strict:
        overrides["strict_reconciliation"] = True
    return replace(config, **overrides) if overrides else config


def _print_summary(result: RunResult) -> None:
    for line in result.stats.summary_lines():
        print(line)
    if result.failures:
        print("Detail fetches that produced no data:")
        for outcome in result.failures:
            print(f"- #{outcome.original_index} {outcome.reference}: {outcome.error}")
    if result.workbook_path is not None:
        print(f"Excel file created: {result.workbook_path}")


def main(argv: list[str] | None = None) -> None:
    try:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    except Exception:
        pass

    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = _apply_cli_overrides(ReportConfig.from_env(), args)
        run_date = _parse_run_date(args.run_date)
    except ValueError as exc:
        parser.error(str(exc))

    if not config.adspower_enabled:
        raise SystemExit(
            "AdsPower is not configured. Provide ADSPOWER_PROFILE_ID (or --profile-id) "
            "and ADSPOWER_API_URL."
        )

    try:
        result = run_with_profile(config, progress=print, run_date=run_date)
    except ProfileSessionError as exc:
        raise SystemExit(f"Browser profile failed: {exc}") from exc
    except ExtractionError as exc:
        raise SystemExit(f"Extraction failed: {exc}") from exc
    except ReconciliationAmbiguity as exc:
        raise SystemExit(f"Reconciliation failed: {exc}") from exc
    except SinkWriteError as exc:
        raise SystemExit(f"Workbook write failed: {exc}") from exc

    _print_summary(result)


if __name__ == "__main__":
    main()
