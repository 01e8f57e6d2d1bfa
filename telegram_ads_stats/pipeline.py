"""High-level orchestration for the monthly ads statistics export."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Protocol, Sequence

from telegram_ads_stats.clients.ads_browser import AdsBrowserSession
from telegram_ads_stats.clients.adspower_client import AdsPowerClient
from telegram_ads_stats.config import ReportConfig
from telegram_ads_stats.models import FetchOutcome, MatchResult, Report, RunStats, SummaryRecord
from telegram_ads_stats.orchestrator import DetailFetcher, DetailOrchestrator, OrchestrationResult
from telegram_ads_stats.reconciliation import reconcile
from telegram_ads_stats.reporting import assemble_report, count_sheet_name_collisions, write_workbook

Progress = Callable[[str], None]


class SummaryExtractor(Protocol):
    async def extract_summary(self, source_key: str) -> list[SummaryRecord]:
        ...


@dataclass
class RunResult:
    stats: RunStats
    report: Report
    matches: MatchResult
    workbook_path: Path | None = None
    failures: list[FetchOutcome] = field(default_factory=list)


def _silent(_message: str) -> None:
    return None


def build_run_stats(
    records: Sequence[SummaryRecord],
    orchestration: OrchestrationResult,
    matches: MatchResult,
    report: Report,
) -> RunStats:
    return RunStats(
        total_records=len(records),
        records_with_href=sum(1 for record in records if record.has_href),
        records_with_details=len(orchestration.details),
        excluded_records=len(report.excluded_positions),
        tagged_cells_without_link=sum(
            1 for record in records for cell in record.cells if cell.is_tagged_without_link
        ),
        failed_fetches=len(orchestration.failures),
        ambiguities=len(matches.ambiguities),
        sheet_name_collisions=count_sheet_name_collisions(report),
    )


async def run_report(
    config: ReportConfig,
    *,
    extractor: SummaryExtractor,
    fetcher: DetailFetcher,
    progress: Progress | None = None,
    run_date: date | None = None,
) -> RunResult:
    emit = progress or _silent

    emit(f"Extracting summary table for month {config.source_key}...")
    records = await extractor.extract_summary(config.source_key)
    emit(f"Found {len(records)} summary rows")

    orchestrator = DetailOrchestrator(
        fetcher,
        concurrency_limit=config.concurrency_limit,
        inter_batch_delay_sec=config.inter_batch_delay_sec,
        per_fetch_timeout_sec=config.per_fetch_timeout_sec,
    )
    orchestration = await orchestrator.run(records, progress=emit)

    matches = reconcile(
        records,
        orchestration.details,
        strict=config.strict_reconciliation,
    )
    for ambiguity in matches.ambiguities:
        emit(f"Reconciliation ambiguity: {ambiguity}")

    report = assemble_report(records, matches)
    stats = build_run_stats(records, orchestration, matches, report)
    result = RunResult(
        stats=stats,
        report=report,
        matches=matches,
        failures=orchestration.failures,
    )

    if not records:
        emit("No data to create Excel file")
        return result

    result.workbook_path = write_workbook(report, Path(config.output_dir), run_date)
    return result


async def _run_in_browser(
    config: ReportConfig,
    ws_endpoint: str,
    progress: Progress,
    run_date: date | None,
) -> RunResult:
    async with AdsBrowserSession(
        ws_endpoint=ws_endpoint,
        base_url=config.base_url,
        connect_timeout_ms=config.cdp_connect_timeout_ms,
        navigation_timeout_ms=config.navigation_timeout_ms,
        summary_timeout_ms=config.summary_timeout_ms,
        table_timeout_ms=config.table_timeout_ms,
        scroll_settle_ms=config.scroll_settle_ms,
    ) as session:
        return await run_report(
            config,
            extractor=session,
            fetcher=session,
            progress=progress,
            run_date=run_date,
        )


def run_with_profile(
    config: ReportConfig,
    *,
    progress: Progress = print,
    run_date: date | None = None,
) -> RunResult:
    """Start the AdsPower profile, run the export, and always stop the profile."""

    client = AdsPowerClient(api_url=config.adspower_api_url)
    progress(f"Starting browser for profile {config.adspower_profile_id}...")
    ws_endpoint = client.start_profile(
        config.adspower_profile_id,
        headless=config.adspower_headless,
    )
    try:
        return asyncio.run(_run_in_browser(config, ws_endpoint, progress, run_date))
    finally:
        if not client.stop_profile(config.adspower_profile_id):
            progress(f"AdsPower profile stop failed: {config.adspower_profile_id}")
