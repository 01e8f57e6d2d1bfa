"""Association of fetched detail datasets with the summary rows they describe."""
from __future__ import annotations

import re
from typing import Callable, Iterable, Sequence

from telegram_ads_stats.errors import ReconciliationAmbiguity
from telegram_ads_stats.models import DetailRecord, MatchResult, SummaryRecord

AD_REFERENCE_PATTERN = re.compile(r"/account/ad/(\d+)")

STRATEGY_ID = "id"
STRATEGY_LABEL = "label"
STRATEGY_INDEX = "index"
STRATEGY_ORDER = (STRATEGY_ID, STRATEGY_LABEL, STRATEGY_INDEX)


def extract_ad_id(reference: str | None) -> str | None:
    if not reference:
        return None
    match = AD_REFERENCE_PATTERN.search(reference)
    return match.group(1) if match else None


def _label_key(label: str | None) -> str | None:
    if label is None:
        return None
    value = label.strip()
    return value or None


def _detail_sort_key(detail: DetailRecord) -> tuple[int, str, str]:
    index = detail.original_index if detail.original_index is not None else -1
    return (index, detail.source_href or "", detail.campaign_label or "")


def _build_index(
    details: Sequence[DetailRecord],
    key_fn: Callable[[DetailRecord], object],
) -> dict[object, int]:
    # First detail in canonical order owns a key.
    index: dict[object, int] = {}
    for slot, detail in enumerate(details):
        key = key_fn(detail)
        if key is None or key in index:
            continue
        index[key] = slot
    return index


def _summary_key(strategy: str, position: int, record: SummaryRecord) -> object:
    if strategy == STRATEGY_ID:
        return extract_ad_id(record.href)
    if strategy == STRATEGY_LABEL:
        return _label_key(record.label)
    return position


def reconcile(
    summaries: Sequence[SummaryRecord],
    details: Iterable[DetailRecord],
    *,
    strict: bool = False,
) -> MatchResult:
    """Run the id -> label -> index cascade and return injective assignments.

    Strategies are applied one pass at a time across every href-bearing record
    in sequence order, so a record only reaches a weaker strategy when every
    stronger one failed for it. A detail dataset is consumed by the first
    record that claims it; later claimants are recorded as ambiguities and fall
    through. Records without an href are never matched.
    """

    ordered = sorted(details, key=_detail_sort_key)
    indices = {
        STRATEGY_ID: _build_index(ordered, lambda d: extract_ad_id(d.source_href)),
        STRATEGY_LABEL: _build_index(ordered, lambda d: _label_key(d.campaign_label)),
        STRATEGY_INDEX: _build_index(ordered, lambda d: d.original_index),
    }

    result = MatchResult()
    consumed: dict[int, int] = {}
    contested: dict[tuple[str, int], list[int]] = {}
    contested_keys: dict[tuple[str, int], object] = {}

    eligible = [
        (position, record)
        for position, record in enumerate(summaries)
        if record.has_href
    ]
    for strategy in STRATEGY_ORDER:
        index = indices[strategy]
        for position, record in eligible:
            if position in result.assignments:
                continue
            key = _summary_key(strategy, position, record)
            if key is None:
                continue
            slot = index.get(key)
            if slot is None:
                continue
            owner = consumed.get(slot)
            if owner is not None:
                contested.setdefault((strategy, slot), []).append(position)
                contested_keys[(strategy, slot)] = key
                continue
            consumed[slot] = position
            result.assignments[position] = ordered[slot]
            result.strategies[position] = strategy

    for (strategy, slot), rejected in contested.items():
        ambiguity = ReconciliationAmbiguity(
            strategy=strategy,
            key=str(contested_keys[(strategy, slot)]),
            claimed_by=consumed[slot],
            rejected=tuple(rejected),
        )
        if strict:
            raise ambiguity
        result.ambiguities.append(ambiguity)

    return result
