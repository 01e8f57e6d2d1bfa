from __future__ import annotations

import re

from bs4 import BeautifulSoup

from telegram_ads_stats.errors import ExtractionError
from telegram_ads_stats.models import Cell, DetailRow, SummaryRecord

STATS_TABLE_SELECTOR = "table.table.pr-table.pr-table-sticky.pr-table-vtop"
TAGGED_CELL_SELECTOR = ".pr-cell"
DIAMOND_GLYPH = "\U0001F48E"
AMOUNT_RE = re.compile(r"(\d+\.?\d*)")


def _clean_text(raw: str) -> str:
    return raw.replace(DIAMOND_GLYPH, "").strip()


def _parse_cell(td) -> Cell:
    anchor = td.find("a")
    link = anchor.get("href") if anchor is not None else None
    return Cell(
        text=_clean_text(td.get_text()),
        has_link=anchor is not None,
        link=link or None,
        is_tagged_cell=td.select_one(TAGGED_CELL_SELECTOR) is not None,
    )


def parse_summary_table(html: str) -> list[SummaryRecord]:
    """Parse the monthly stats table into summary records.

    The first ``tr`` is the header row. Rows without cells are dropped. The
    first anchor of a row provides its href and campaign label.
    """

    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(STATS_TABLE_SELECTOR)
    if table is None:
        raise ExtractionError("Stats table not found on the summary page.")

    records: list[SummaryRecord] = []
    for row in table.select("tr")[1:]:
        tds = row.find_all("td")
        if not tds:
            continue

        href: str | None = None
        label = ""
        anchor = row.find("a")
        if anchor is not None:
            href = anchor.get("href")
            label = anchor.get_text().strip()

        cells = tuple(_parse_cell(td) for td in tds)
        records.append(
            SummaryRecord(
                id=cells[0].text,
                label=label,
                href=href,
                cells=cells,
            )
        )
    return records


def _tagged_text(td) -> str:
    node = td.select_one(TAGGED_CELL_SELECTOR)
    if node is None:
        return ""
    return node.get_text().strip()


def parse_detail_rows(html: str) -> list[DetailRow] | None:
    """Return the daily rows of an ad stats page, or ``None`` if no table."""

    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(STATS_TABLE_SELECTOR)
    if table is None:
        return None

    rows: list[DetailRow] = []
    for tr in table.select("tbody tr"):
        tds = tr.find_all("td")
        if len(tds) < 3:
            continue
        amount_text = _tagged_text(tds[2])
        match = AMOUNT_RE.search(amount_text)
        rows.append(
            DetailRow(
                date=_tagged_text(tds[0]),
                metric_a=_tagged_text(tds[1]),
                metric_b=match.group(1) if match else amount_text,
            )
        )
    return rows
