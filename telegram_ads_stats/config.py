from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import date

MONTH_KEY_RE = re.compile(r"^\d{6}$")


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def current_month_key(today: date | None = None) -> str:
    day = today or date.today()
    return f"{day.year:04d}{day.month:02d}"


def normalize_month_key(raw: str) -> str:
    value = raw.strip().replace("-", "")
    if not MONTH_KEY_RE.match(value):
        raise ValueError(f"Report month must look like YYYYMM, got: {raw!r}")
    month = int(value[4:])
    if not 1 <= month <= 12:
        raise ValueError(f"Report month is out of range: {raw!r}")
    return value


def _normalize_base_url(raw: str) -> str:
    value = raw.strip() or "https://ads.telegram.org"
    if not value.startswith(("http://", "https://")):
        value = f"https://{value}"
    return value.rstrip("/")


@dataclass(frozen=True)
class ReportConfig:
    source_key: str
    output_dir: str
    concurrency_limit: int
    inter_batch_delay_ms: int
    per_fetch_timeout_ms: int
    navigation_timeout_ms: int
    table_timeout_ms: int
    summary_timeout_ms: int
    scroll_settle_ms: int
    strict_reconciliation: bool

    base_url: str
    adspower_api_url: str
    adspower_profile_id: str
    adspower_headless: bool
    cdp_connect_timeout_ms: int

    @classmethod
    def from_env(cls) -> "ReportConfig":
        return cls(
            source_key=normalize_month_key(_env("REPORT_MONTH", current_month_key())),
            output_dir=_env("OUTPUT_DIR", "./exports"),
            concurrency_limit=max(1, _env_int("CONCURRENCY_LIMIT", 10)),
            inter_batch_delay_ms=max(0, _env_int("INTER_BATCH_DELAY_MS", 2000)),
            per_fetch_timeout_ms=max(1, _env_int("PER_FETCH_TIMEOUT_MS", 90000)),
            navigation_timeout_ms=max(1, _env_int("NAVIGATION_TIMEOUT_MS", 60000)),
            table_timeout_ms=max(1, _env_int("TABLE_TIMEOUT_MS", 30000)),
            summary_timeout_ms=max(1, _env_int("SUMMARY_TIMEOUT_MS", 120000)),
            scroll_settle_ms=max(0, _env_int("SCROLL_SETTLE_MS", 2000)),
            strict_reconciliation=_env_bool("STRICT_RECONCILIATION", False),
            base_url=_normalize_base_url(_env("TELEGRAM_ADS_BASE_URL", "https://ads.telegram.org")),
            adspower_api_url=_env("ADSPOWER_API_URL", "http://local.adspower.net:50325").rstrip("/"),
            adspower_profile_id=_env("ADSPOWER_PROFILE_ID"),
            adspower_headless=_env_bool("ADSPOWER_HEADLESS", True),
            cdp_connect_timeout_ms=max(1, _env_int("CDP_CONNECT_TIMEOUT_MS", 30000)),
        )

    @property
    def adspower_enabled(self) -> bool:
        return bool(self.adspower_api_url and self.adspower_profile_id)

    @property
    def inter_batch_delay_sec(self) -> float:
        return self.inter_batch_delay_ms / 1000.0

    @property
    def per_fetch_timeout_sec(self) -> float:
        return self.per_fetch_timeout_ms / 1000.0
