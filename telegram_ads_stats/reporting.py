"""Report assembly and workbook output."""
from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Sequence

from openpyxl import Workbook

from telegram_ads_stats.errors import SinkWriteError
from telegram_ads_stats.models import MatchResult, Report, Sheet, SummaryRecord
from telegram_ads_stats.sheet_names import encode_sheet_name

UNKNOWN_LABEL = "Unknown"
TOTAL_SHEET_NAME = "Total"
TOTAL_ROW_CELL_COUNT = 3
EMPTY_SHEET_NAME = "Report"
WORKBOOK_FILENAME_TEMPLATE = "Telegram_Ads_Stats_{day}.xlsx"


def is_excluded(record: SummaryRecord) -> bool:
    if not record.id:
        return True
    label = record.label
    if not label and not record.has_tagged_cell_without_link:
        return True
    if label and (label == UNKNOWN_LABEL or not label.strip()):
        return True
    return False


def header_row(record: SummaryRecord) -> tuple[str, ...]:
    # Empty cell text falls back to the record-level alternates.
    return (
        record.cell_text(0) or record.label or "",
        record.cell_text(1) or record.label or "",
        record.cell_text(2) or record.views or "",
        record.cell_text(3) or record.amount or "",
    )


def detail_rows(record: SummaryRecord, position: int, matches: MatchResult) -> list[tuple[str, ...]]:
    if not record.has_href:
        return []
    detail = matches.detail_for(position)
    if detail is None or not detail.rows:
        return []
    return [tuple(row.as_list()) for row in detail.rows]


def find_total_sheet(records: Sequence[SummaryRecord]) -> Sheet | None:
    for record in records:
        if len(record.cells) == TOTAL_ROW_CELL_COUNT:
            values = tuple(cell.text or "" for cell in record.cells)
            return Sheet(name=TOTAL_SHEET_NAME, rows=(values,))
    return None


def assemble_report(records: Sequence[SummaryRecord], matches: MatchResult) -> Report:
    """Build one sheet per retained record plus the optional ``Total`` sheet.

    Each sheet holds the summary header row, a blank separator row and the
    matched daily rows. Records with an empty id, no usable label or the
    ``Unknown`` placeholder are skipped; a record without a label is kept when
    it carries a tagged, link-less cell with text.
    """

    report = Report()
    for position, record in enumerate(records):
        if is_excluded(record):
            report.excluded_positions.append(position)
            continue

        rows = [header_row(record), (), *detail_rows(record, position, matches)]
        name = encode_sheet_name(record.id, record.title)
        report.sheets.append(Sheet(name=name, rows=tuple(rows)))

    total = find_total_sheet(records)
    if total is not None:
        report.sheets.append(total)
    return report


def count_sheet_name_collisions(report: Report) -> int:
    names = report.sheet_names
    return len(names) - len(set(names))


def workbook_path(output_dir: Path, run_date: date | None = None) -> Path:
    day = (run_date or date.today()).isoformat()
    return Path(output_dir) / WORKBOOK_FILENAME_TEMPLATE.format(day=day)


def build_workbook(report: Report) -> Workbook:
    workbook = Workbook()
    workbook.remove(workbook.active)

    for sheet in report.sheets:
        if sheet.name in workbook.sheetnames:
            # Same title again: the later sheet replaces the earlier one.
            previous = workbook[sheet.name]
            slot = workbook.index(previous)
            workbook.remove(previous)
            worksheet = workbook.create_sheet(title=sheet.name, index=slot)
        else:
            worksheet = workbook.create_sheet(title=sheet.name)
        for row in sheet.rows:
            worksheet.append(list(row))

    if not workbook.sheetnames:
        workbook.create_sheet(title=EMPTY_SHEET_NAME)
    return workbook


def write_workbook(report: Report, output_dir: Path, run_date: date | None = None) -> Path:
    target = workbook_path(output_dir, run_date)
    partial = target.with_name(f"{target.name}.part")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        build_workbook(report).save(partial)
        os.replace(partial, target)
    except (OSError, ValueError) as exc:
        # openpyxl raises IllegalCharacterError (a ValueError) for control characters.
        try:
            partial.unlink(missing_ok=True)
        except OSError:
            pass
        raise SinkWriteError(f"Failed to write workbook {target}: {exc}") from exc
    return target
