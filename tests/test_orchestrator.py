from __future__ import annotations

import asyncio

from telegram_ads_stats.errors import NavigationError
from telegram_ads_stats.models import DetailRow, SummaryRecord
from telegram_ads_stats.orchestrator import DetailOrchestrator, plan_batches, qualifying_positions


class _RecordingFetcher:
    """Fake detail fetcher that tracks concurrency and per-reference behaviour."""

    def __init__(self, behaviours: dict[str, object] | None = None, delay: float = 0.01) -> None:
        self.behaviours = behaviours or {}
        self.delay = delay
        self.in_flight = 0
        self.peak = 0
        self.calls: list[str] = []

    async def fetch(self, reference: str, timeout_sec: float):
        self.calls.append(reference)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            behaviour = self.behaviours.get(reference)
            if behaviour == "hang":
                await asyncio.sleep(10)
            await asyncio.sleep(self.delay)
            if isinstance(behaviour, Exception):
                raise behaviour
            if behaviour == "empty":
                return []
            return [DetailRow("2025-07-01", "120", reference.rsplit("/", 1)[-1])]
        finally:
            self.in_flight -= 1


def _records(count: int, *, without_href: tuple[int, ...] = ()) -> list[SummaryRecord]:
    return [
        SummaryRecord(
            id=str(100 + n),
            label=f"Campaign {n}",
            href=None if n in without_href else f"/account/ad/{n}",
        )
        for n in range(count)
    ]


def _run(orchestrator: DetailOrchestrator, records, progress=None):
    return asyncio.run(orchestrator.run(records, progress=progress))


def test_plan_batches_splits_in_order():
    assert plan_batches([0, 2, 3, 5, 8], 2) == [[0, 2], [3, 5], [8]]
    assert plan_batches([], 10) == []


def test_qualifying_positions_skip_missing_and_placeholder_hrefs():
    records = [
        SummaryRecord(id="1", href="/account/ad/1"),
        SummaryRecord(id="2", href=None),
        SummaryRecord(id="3", href="null"),
        SummaryRecord(id="4", href="/account/ad/4"),
    ]
    assert qualifying_positions(records) == [0, 3]


def test_in_flight_fetches_never_exceed_limit():
    fetcher = _RecordingFetcher()
    pauses: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        pauses.append(seconds)

    orchestrator = DetailOrchestrator(
        fetcher,
        concurrency_limit=3,
        inter_batch_delay_sec=1.5,
        sleep=fake_sleep,
    )
    result = _run(orchestrator, _records(8))

    assert fetcher.peak <= 3
    assert result.batches == 3
    assert len(result.details) == 8
    # Pause only between batches, not after the last one.
    assert pauses == [1.5, 1.5]


def test_original_index_is_absolute_position():
    records = _records(6, without_href=(0, 3))
    orchestrator = DetailOrchestrator(_RecordingFetcher(), concurrency_limit=2, inter_batch_delay_sec=0)

    result = _run(orchestrator, records)

    by_index = {detail.original_index: detail for detail in result.details}
    assert sorted(by_index) == [1, 2, 4, 5]
    assert by_index[4].source_href == "/account/ad/4"
    assert by_index[4].campaign_label == "Campaign 4"


def test_failures_are_isolated_per_record():
    fetcher = _RecordingFetcher(
        {
            "/account/ad/1": NavigationError("/account/ad/1", "boom"),
            "/account/ad/2": "empty",
            "/account/ad/3": RuntimeError("session closed"),
        }
    )
    messages: list[str] = []
    orchestrator = DetailOrchestrator(fetcher, concurrency_limit=10, inter_batch_delay_sec=0)

    result = _run(orchestrator, _records(5), progress=messages.append)

    assert sorted(d.original_index for d in result.details) == [0, 4]
    failed = {outcome.original_index: outcome.error for outcome in result.failures}
    assert set(failed) == {1, 2, 3}
    assert "boom" in failed[1]
    assert "No stats rows found" in failed[2]
    assert "RuntimeError" in failed[3]
    assert any(message.startswith("Fetch failed: #1") for message in messages)
    assert "Batch 1 completed: 2/5 successful" in messages


def test_stuck_fetch_times_out_without_blocking_siblings():
    fetcher = _RecordingFetcher({"/account/ad/0": "hang"})
    orchestrator = DetailOrchestrator(
        fetcher,
        concurrency_limit=4,
        inter_batch_delay_sec=0,
        per_fetch_timeout_sec=0.2,
    )

    result = _run(orchestrator, _records(4))

    assert sorted(d.original_index for d in result.details) == [1, 2, 3]
    assert len(result.failures) == 1
    assert result.failures[0].error == "Detail fetch exceeded 0.2s (/account/ad/0)"


def test_records_without_href_are_never_fetched():
    fetcher = _RecordingFetcher()
    orchestrator = DetailOrchestrator(fetcher, inter_batch_delay_sec=0)

    result = _run(orchestrator, _records(3, without_href=(0, 1, 2)))

    assert fetcher.calls == []
    assert result.outcomes == []
    assert result.batches == 0
