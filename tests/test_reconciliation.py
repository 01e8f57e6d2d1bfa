from __future__ import annotations

import random

import pytest

from telegram_ads_stats.errors import ReconciliationAmbiguity
from telegram_ads_stats.models import DetailRecord, DetailRow, SummaryRecord
from telegram_ads_stats.reconciliation import (
    STRATEGY_ID,
    STRATEGY_INDEX,
    STRATEGY_LABEL,
    extract_ad_id,
    reconcile,
)


def _detail(
    href: str | None,
    *,
    label: str | None = None,
    index: int | None = None,
    day: str = "2025-07-01",
) -> DetailRecord:
    return DetailRecord(
        source_href=href,
        rows=(DetailRow(day, "120", "1.20"),),
        campaign_label=label,
        original_index=index,
    )


def test_extract_ad_id_reads_numeric_segment():
    assert extract_ad_id("/account/ad/55") == "55"
    assert extract_ad_id("https://ads.telegram.org/account/ad/55?month=202507") == "55"
    assert extract_ad_id("/account/stats") is None
    assert extract_ad_id(None) is None


def test_id_match_wins_over_other_strategies():
    summaries = [SummaryRecord(id="101", label="CampaignA", href="/account/ad/55")]
    by_label = _detail("/account/ad/99", label="CampaignA", index=0)
    by_id = _detail("/account/ad/55", label="Other", index=7)

    result = reconcile(summaries, [by_label, by_id])

    assert result.detail_for(0) is by_id
    assert result.strategy_for(0) == STRATEGY_ID


def test_label_match_is_trimmed_and_case_sensitive():
    summaries = [
        SummaryRecord(id="1", label=" Spring ", href="/account/ad/1"),
        SummaryRecord(id="2", label="summer", href="/account/ad/2"),
    ]
    spring = _detail("/other/1", label="Spring")
    summer = _detail("/other/2", label="Summer")

    result = reconcile(summaries, [spring, summer])

    assert result.detail_for(0) is spring
    assert result.strategy_for(0) == STRATEGY_LABEL
    assert result.detail_for(1) is None


def test_index_match_is_last_resort():
    summaries = [
        SummaryRecord(id="1", label="A", href="/promo/a"),
        SummaryRecord(id="2", label="B", href="/promo/b"),
    ]
    detail = _detail("/promo/b", label="renamed", index=1)

    result = reconcile(summaries, [detail])

    assert result.detail_for(0) is None
    assert result.detail_for(1) is detail
    assert result.strategy_for(1) == STRATEGY_INDEX


@pytest.mark.parametrize("href", [None, "null", "  "])
def test_records_without_href_are_never_assigned(href):
    summaries = [
        SummaryRecord(id="1", label="Shared", href=href),
        SummaryRecord(id="2", label="Shared", href="/account/ad/2"),
    ]
    detail = _detail("/account/ad/2", label="Shared", index=0)

    result = reconcile(summaries, [detail])

    assert result.detail_for(0) is None
    assert result.detail_for(1) is detail


def test_detail_is_assigned_to_at_most_one_record():
    summaries = [
        SummaryRecord(id="1", label="Twin", href="/account/ad/10"),
        SummaryRecord(id="2", label="Twin", href="/account/ad/11"),
    ]
    only = _detail("/account/ad/10", label="Twin", index=0)

    result = reconcile(summaries, [only])

    assert result.detail_for(0) is only
    assert result.detail_for(1) is None
    assigned = [id(detail) for detail in result.assignments.values()]
    assert len(assigned) == len(set(assigned))
    assert len(result.ambiguities) == 1
    ambiguity = result.ambiguities[0]
    assert ambiguity.strategy == STRATEGY_LABEL
    assert ambiguity.claimed_by == 0
    assert ambiguity.rejected == (1,)


def test_stronger_strategy_is_not_preempted_by_earlier_weaker_claim():
    # Record 0 lost its own detail; its label would also fit record 1's detail.
    summaries = [
        SummaryRecord(id="1", label="Same", href="/account/ad/1"),
        SummaryRecord(id="2", label="Same", href="/account/ad/2"),
    ]
    second = _detail("/account/ad/2", label="Same", index=1)

    result = reconcile(summaries, [second])

    assert result.detail_for(1) is second
    assert result.strategy_for(1) == STRATEGY_ID
    assert result.detail_for(0) is None


def test_strict_mode_raises_on_ambiguity():
    summaries = [
        SummaryRecord(id="1", label="Twin", href="/account/ad/5"),
        SummaryRecord(id="2", label="Twin", href="/account/ad/5"),
    ]
    detail = _detail("/account/ad/5", label="Twin", index=0)

    with pytest.raises(ReconciliationAmbiguity):
        reconcile(summaries, [detail], strict=True)


def test_result_does_not_depend_on_detail_order():
    summaries = [
        SummaryRecord(id=str(n), label=f"Campaign {n % 3}", href=f"/account/ad/{n}")
        for n in range(12)
    ]
    details = [
        _detail(f"/account/ad/{n}", label=f"Campaign {n % 3}", index=n, day=f"2025-07-{n + 1:02d}")
        for n in range(0, 12, 2)
    ]
    details.append(_detail(None, label="Campaign 1", index=3, day="2025-08-01"))

    baseline = reconcile(summaries, details)
    shuffled = list(details)
    random.Random(7).shuffle(shuffled)
    again = reconcile(summaries, shuffled)

    assert baseline.assignments == again.assignments
    assert baseline.strategies == again.strategies
    assert [str(a) for a in baseline.ambiguities] == [str(a) for a in again.ambiguities]
