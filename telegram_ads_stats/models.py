from __future__ import annotations

from dataclasses import dataclass, field

from telegram_ads_stats.errors import ReconciliationAmbiguity


NULL_HREF_PLACEHOLDER = "null"


@dataclass(frozen=True)
class Cell:
    text: str
    has_link: bool = False
    link: str | None = None
    is_tagged_cell: bool = False

    @property
    def is_tagged_without_link(self) -> bool:
        return self.is_tagged_cell and not self.has_link and bool(self.text.strip())


@dataclass(frozen=True)
class SummaryRecord:
    id: str
    label: str = ""
    href: str | None = None
    cells: tuple[Cell, ...] = ()
    views: str = ""
    amount: str = ""

    @property
    def has_href(self) -> bool:
        if self.href is None:
            return False
        value = self.href.strip()
        return bool(value) and value != NULL_HREF_PLACEHOLDER

    @property
    def has_tagged_cell_without_link(self) -> bool:
        return any(cell.is_tagged_without_link for cell in self.cells)

    @property
    def title(self) -> str:
        return self.cell_text(1) or self.label

    def cell_text(self, position: int) -> str:
        if position < len(self.cells):
            return self.cells[position].text
        return ""


@dataclass(frozen=True)
class DetailRow:
    date: str
    metric_a: str
    metric_b: str

    def as_list(self) -> list[str]:
        return [self.date or "", self.metric_a or "", self.metric_b or ""]


@dataclass(frozen=True)
class DetailRecord:
    source_href: str | None
    rows: tuple[DetailRow, ...]
    campaign_label: str | None = None
    original_index: int | None = None


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one detail fetch; exactly one of ``detail``/``error`` is set."""

    original_index: int
    reference: str
    detail: DetailRecord | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.detail is not None


@dataclass
class MatchResult:
    """Assignment of detail datasets to summary positions.

    Keys are absolute positions in the summary sequence, so two records with
    identical content are still told apart.
    """

    assignments: dict[int, DetailRecord] = field(default_factory=dict)
    strategies: dict[int, str] = field(default_factory=dict)
    ambiguities: list[ReconciliationAmbiguity] = field(default_factory=list)

    def detail_for(self, position: int) -> DetailRecord | None:
        return self.assignments.get(position)

    def strategy_for(self, position: int) -> str | None:
        return self.strategies.get(position)


@dataclass(frozen=True)
class Sheet:
    name: str
    rows: tuple[tuple[str, ...], ...]


@dataclass
class Report:
    sheets: list[Sheet] = field(default_factory=list)
    excluded_positions: list[int] = field(default_factory=list)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def as_pairs(self) -> list[tuple[str, list[list[str]]]]:
        return [(sheet.name, [list(row) for row in sheet.rows]) for sheet in self.sheets]


@dataclass(frozen=True)
class RunStats:
    total_records: int = 0
    records_with_href: int = 0
    records_with_details: int = 0
    excluded_records: int = 0
    tagged_cells_without_link: int = 0
    failed_fetches: int = 0
    ambiguities: int = 0
    sheet_name_collisions: int = 0

    def summary_lines(self) -> list[str]:
        return [
            f"Summary: {self.total_records} total summary records found",
            f"{self.records_with_href} records have hrefs (can get detailed stats)",
            f"{self.records_with_details} records resolved to detailed stats",
            f"{self.failed_fetches} detail fetches failed",
            f"{self.tagged_cells_without_link} tagged cells without href found",
            f"{self.excluded_records} records excluded from the report",
            f"{self.ambiguities} reconciliation ambiguities detected",
            f"{self.sheet_name_collisions} sheet name collisions (last write wins)",
        ]
