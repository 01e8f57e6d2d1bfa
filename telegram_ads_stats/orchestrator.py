from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol, Sequence

from telegram_ads_stats.errors import FetchFailure, FetchNotFound
from telegram_ads_stats.models import DetailRecord, DetailRow, FetchOutcome, SummaryRecord

DEFAULT_CONCURRENCY_LIMIT = 10


class DetailFetcher(Protocol):
    async def fetch(self, reference: str, timeout_sec: float) -> Sequence[DetailRow]:
        ...


@dataclass
class OrchestrationResult:
    outcomes: list[FetchOutcome] = field(default_factory=list)
    batches: int = 0

    @property
    def details(self) -> list[DetailRecord]:
        return [outcome.detail for outcome in self.outcomes if outcome.detail is not None]

    @property
    def failures(self) -> list[FetchOutcome]:
        return [outcome for outcome in self.outcomes if outcome.detail is None]


def qualifying_positions(records: Sequence[SummaryRecord]) -> list[int]:
    return [position for position, record in enumerate(records) if record.has_href]


def plan_batches(positions: Sequence[int], limit: int) -> list[list[int]]:
    size = max(1, int(limit))
    return [list(positions[start:start + size]) for start in range(0, len(positions), size)]


class DetailOrchestrator:
    """Fetches detail datasets in sequential, bounded-concurrency batches.

    Every fetch holds one semaphore permit for its whole lifetime, so the
    number of in-flight calls never exceeds ``concurrency_limit``. A failing or
    stuck fetch is turned into a failed ``FetchOutcome`` and never cancels its
    siblings.
    """

    def __init__(
        self,
        fetcher: DetailFetcher,
        *,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        inter_batch_delay_sec: float = 2.0,
        per_fetch_timeout_sec: float = 30.0,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.concurrency_limit = max(1, int(concurrency_limit))
        self.inter_batch_delay_sec = max(0.0, float(inter_batch_delay_sec))
        self.per_fetch_timeout_sec = max(0.001, float(per_fetch_timeout_sec))
        self._sleep = sleep or asyncio.sleep

    async def _fetch_one(
        self,
        permits: asyncio.Semaphore,
        position: int,
        record: SummaryRecord,
    ) -> FetchOutcome:
        reference = (record.href or "").strip()
        async with permits:
            try:
                rows = await asyncio.wait_for(
                    self.fetcher.fetch(reference, self.per_fetch_timeout_sec),
                    timeout=self.per_fetch_timeout_sec,
                )
                if not rows:
                    raise FetchNotFound(reference, "No stats rows found")
            except asyncio.TimeoutError:
                return FetchOutcome(
                    position,
                    reference,
                    error=f"Detail fetch exceeded {self.per_fetch_timeout_sec:g}s ({reference})",
                )
            except FetchFailure as exc:
                return FetchOutcome(position, reference, error=str(exc))
            except Exception as exc:  # noqa: BLE001
                return FetchOutcome(
                    position,
                    reference,
                    error=f"{type(exc).__name__}: {exc}",
                )

        detail = DetailRecord(
            source_href=record.href,
            rows=tuple(rows),
            campaign_label=record.label,
            original_index=position,
        )
        return FetchOutcome(position, reference, detail=detail)

    async def run(
        self,
        records: Sequence[SummaryRecord],
        progress: Callable[[str], None] | None = None,
    ) -> OrchestrationResult:
        emit = progress or (lambda _message: None)
        batches = plan_batches(qualifying_positions(records), self.concurrency_limit)
        result = OrchestrationResult()
        permits = asyncio.Semaphore(self.concurrency_limit)

        for number, batch in enumerate(batches, start=1):
            emit(f"Processing batch {number}/{len(batches)}: {len(batch)} ads with hrefs")
            outcomes = await asyncio.gather(
                *(self._fetch_one(permits, position, records[position]) for position in batch)
            )
            for outcome in outcomes:
                if not outcome.ok:
                    emit(f"Fetch failed: #{outcome.original_index} {outcome.reference} | {outcome.error}")
            result.outcomes.extend(outcomes)
            result.batches += 1
            succeeded = sum(1 for outcome in outcomes if outcome.ok)
            emit(f"Batch {number} completed: {succeeded}/{len(batch)} successful")

            if number < len(batches) and self.inter_batch_delay_sec > 0:
                await self._sleep(self.inter_batch_delay_sec)

        return result
