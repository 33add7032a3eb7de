"""Turn an uploaded sales ledger into a :class:`PerformanceSnapshot`.

CSV ledgers are aggregated locally. Any other document is handed to an
extraction collaborator (usually the LLM, see ``revelevate.llm``) that
returns a best-effort record of the same figures.
"""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .errors import EmptyLedgerError, ExtractionError, MalformedLedgerError
from .models import ExtraMetrics, PerformanceSnapshot, sync_timestamp
from .numeric import parse_leading_number, round_half_up, sanitize_number


logger = logging.getLogger(__name__)

TABULAR_EXTENSIONS = {".csv"}
EXTRACTION_CHAR_LIMIT = 10_000
AI_SOURCE_PREFIX = "AI Extracted: "

LedgerExtractor = Callable[[str], Mapping[str, Any]]


# --- Column discovery ------------------------------------------------------
@dataclass(frozen=True)
class ColumnRule:
    tokens: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()


# Most specific token first; the first header containing a token wins.
COLUMN_RULES: Dict[str, ColumnRule] = {
    "revenue": ColumnRule(("total_revenue", "room_revenue", "revenue", "sales", "amount")),
    "occupied": ColumnRule(
        ("occupied_room_nights", "room_nights_sold", "occupied", "rooms_sold", "sold")
    ),
    "inventory": ColumnRule(
        ("inventory_room_nights", "inventory", "available", "total_rooms", "capacity")
    ),
    "cost": ColumnRule(("total_cost", "operating_cost", "cost", "expense")),
    "channel": ColumnRule(("booking_channel", "channel", "source", "segment")),
    "service_rating": ColumnRule(
        ("service_rating", "guest_rating", "satisfaction", "review_score"),
        exclude=("addon", "add_on"),
    ),
    "hosp_usage": ColumnRule(
        ("hosp_addon_pct", "hosp_addon_usage", "hospitality_addon_usage", "hospitality_usage"),
        exclude=("non", "rating"),
    ),
    "non_hosp_usage": ColumnRule(
        (
            "non_hosp_addon_pct",
            "non_hosp_addon_usage",
            "non_hospitality_addon_usage",
            "non_hospitality_usage",
        ),
        exclude=("rating",),
    ),
    "hosp_rating": ColumnRule(
        ("hosp_addon_rating", "hospitality_addon_rating", "hospitality_rating"),
        exclude=("non",),
    ),
    "non_hosp_rating": ColumnRule(
        ("non_hosp_addon_rating", "non_hospitality_addon_rating", "non_hospitality_rating")
    ),
}

SUMMED_COLUMNS = (
    "revenue",
    "occupied",
    "inventory",
    "cost",
    "service_rating",
    "hosp_usage",
    "non_hosp_usage",
    "hosp_rating",
    "non_hosp_rating",
)


@dataclass(frozen=True)
class FallbackConstants:
    profit_margin: float
    occ_rate: int
    adr: int
    direct: int
    avg_service_rating: float = 4.2
    hosp_addon_pct: int = 15
    non_hosp_addon_pct: int = 10
    hosp_addon_rating: float = 4.5
    non_hosp_addon_rating: float = 4.0


# The two ingestion paths have always shipped different fallbacks; keep both.
TABULAR_FALLBACKS = FallbackConstants(profit_margin=25.0, occ_rate=68, adr=185, direct=22)
EXTRACTED_FALLBACKS = FallbackConstants(profit_margin=25.0, occ_rate=65, adr=150, direct=20)


def normalize_header(header: str) -> str:
    return "_".join(header.strip().lower().replace("-", " ").split())


def find_column(headers: Sequence[str], rule: ColumnRule) -> int:
    """Return the index of the first header matching the rule, or -1."""

    for token in rule.tokens:
        for idx, header in enumerate(headers):
            if token not in header:
                continue
            if any(excluded in header for excluded in rule.exclude):
                continue
            return idx
    return -1


def ledger_fingerprint(file_name: str, content: bytes) -> str:
    """Identify one upload by name and bytes, so a corrected file with the same name is parsed again."""

    return f"{file_name}:{hashlib.sha256(content).hexdigest()}"


def is_tabular(file_name: str) -> bool:
    return PurePath(file_name or "").suffix.lower() in TABULAR_EXTENSIONS


# --- Tabular path ----------------------------------------------------------
def split_ledger_rows(content: str) -> Tuple[List[str], List[List[str]]]:
    lines = [line.rstrip("\r") for line in content.split("\n")]
    if len(lines) < 2:
        raise MalformedLedgerError(
            f"Ledger has {len(lines)} line(s); a header and data rows are required."
        )

    headers = [normalize_header(cell) for cell in lines[0].split(",")]
    rows: List[List[str]] = []
    for line in lines[1:]:
        cells = [cell.strip() for cell in line.split(",")]
        if len(cells) < len(headers):
            continue
        if not any(cells):
            continue
        rows.append(cells)
    return headers, rows


def aggregate_ledger(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> Dict[str, Any]:
    """Sum every metric column and count direct bookings across the kept rows."""

    if not rows:
        raise EmptyLedgerError("Ledger contains a header but no usable data rows.")

    columns = {name: find_column(headers, rule) for name, rule in COLUMN_RULES.items()}
    frame = pd.DataFrame([list(row[: len(headers)]) for row in rows])

    totals: Dict[str, Any] = {"rows": len(frame), "columns": columns}
    for name in SUMMED_COLUMNS:
        idx = columns[name]
        totals[name] = 0.0 if idx < 0 else float(frame[idx].map(parse_leading_number).sum())

    channel_idx = columns["channel"]
    if channel_idx < 0:
        totals["direct_count"] = 0
    else:
        channel = frame[channel_idx].astype(str).str.lower()
        totals["direct_count"] = int(channel.str.contains("direct", regex=False).sum())
    return totals


def derive_tabular_snapshot(
    totals: Mapping[str, Any],
    source: str,
    now: Optional[datetime] = None,
    fallbacks: FallbackConstants = TABULAR_FALLBACKS,
) -> PerformanceSnapshot:
    rows = totals["rows"]
    columns = totals["columns"]
    revenue = totals["revenue"]
    occupied = totals["occupied"]
    inventory = totals["inventory"]
    cost = totals["cost"]

    def average(name: str, digits: int, fallback: float) -> float:
        if columns[name] < 0:
            return fallback
        return round_half_up(totals[name] / rows, digits)

    profit_margin = (
        round_half_up((revenue - cost) / revenue * 100, 1)
        if revenue > 0
        else fallbacks.profit_margin
    )
    occ_rate = (
        int(round_half_up(occupied / inventory * 100)) if inventory > 0 else fallbacks.occ_rate
    )
    adr = int(round_half_up(revenue / occupied)) if occupied > 0 else fallbacks.adr
    direct = (
        int(round_half_up(totals["direct_count"] / rows * 100))
        if columns["channel"] >= 0
        else fallbacks.direct
    )

    return PerformanceSnapshot(
        profit_margin=profit_margin,
        transactions=rows,
        occ_rate=occ_rate,
        adr=adr,
        direct=direct,
        ota=100 - direct,
        extra_metrics=ExtraMetrics(
            avg_service_rating=average("service_rating", 1, fallbacks.avg_service_rating),
            hosp_addon_pct=int(average("hosp_usage", 0, fallbacks.hosp_addon_pct)),
            non_hosp_addon_pct=int(average("non_hosp_usage", 0, fallbacks.non_hosp_addon_pct)),
            hosp_addon_rating=average("hosp_rating", 1, fallbacks.hosp_addon_rating),
            non_hosp_addon_rating=average("non_hosp_rating", 1, fallbacks.non_hosp_addon_rating),
        ),
        last_sync=sync_timestamp(now),
        source=source,
        is_default=False,
    )


# --- Unstructured path -----------------------------------------------------
def derive_extracted_snapshot(
    record: Mapping[str, Any],
    source: str,
    now: Optional[datetime] = None,
    fallbacks: FallbackConstants = EXTRACTED_FALLBACKS,
) -> PerformanceSnapshot:
    revenue = sanitize_number(record.get("revenue"))
    occupied = sanitize_number(record.get("occupied_rooms"))
    total_rooms = sanitize_number(record.get("total_rooms"))
    cost = sanitize_number(record.get("cost"))
    direct_bookings = sanitize_number(record.get("direct_bookings_count"))
    total_bookings = sanitize_number(record.get("total_bookings_count"))

    profit_margin = (
        round_half_up((revenue - cost) / revenue * 100, 1)
        if revenue > 0
        else fallbacks.profit_margin
    )
    occ_rate = (
        int(round_half_up(occupied / total_rooms * 100))
        if total_rooms > 0
        else fallbacks.occ_rate
    )
    adr = int(round_half_up(revenue / occupied)) if occupied > 0 else fallbacks.adr
    direct = (
        int(round_half_up(direct_bookings / total_bookings * 100))
        if total_bookings > 0
        else fallbacks.direct
    )

    def metric(key: str, digits: int, fallback: float) -> float:
        value = sanitize_number(record.get(key))
        return round_half_up(value, digits) if value else fallback

    return PerformanceSnapshot(
        profit_margin=profit_margin,
        transactions=int(max(total_bookings, 0)),
        occ_rate=occ_rate,
        adr=adr,
        direct=direct,
        ota=100 - direct,
        extra_metrics=ExtraMetrics(
            avg_service_rating=metric("avg_service_rating", 1, fallbacks.avg_service_rating),
            hosp_addon_pct=int(metric("hosp_addon_pct", 0, fallbacks.hosp_addon_pct)),
            non_hosp_addon_pct=int(metric("non_hosp_addon_pct", 0, fallbacks.non_hosp_addon_pct)),
            hosp_addon_rating=metric("hosp_addon_rating", 1, fallbacks.hosp_addon_rating),
            non_hosp_addon_rating=metric(
                "non_hosp_addon_rating", 1, fallbacks.non_hosp_addon_rating
            ),
        ),
        last_sync=sync_timestamp(now),
        source=source,
        is_default=False,
    )


def extract_ledger_record(content: str, extractor: Optional[LedgerExtractor]) -> Mapping[str, Any]:
    if extractor is None:
        raise ExtractionError("No extraction service is configured for non-CSV ledgers.")
    try:
        record = extractor(content[:EXTRACTION_CHAR_LIMIT])
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionError(f"Ledger extraction failed: {exc}") from exc
    if not isinstance(record, Mapping):
        raise ExtractionError(
            f"Ledger extraction returned {type(record).__name__}, expected an object."
        )
    return record


# --- Entry point -----------------------------------------------------------
def parse_ledger(
    content: str,
    file_name: str,
    extractor: Optional[LedgerExtractor] = None,
    now: Optional[datetime] = None,
) -> PerformanceSnapshot:
    if is_tabular(file_name):
        headers, rows = split_ledger_rows(content)
        totals = aggregate_ledger(headers, rows)
        snapshot = derive_tabular_snapshot(totals, source=file_name, now=now)
        missing = [name for name, idx in totals["columns"].items() if idx < 0]
        if missing:
            logger.warning("Ledger %s has no column for: %s", file_name, ", ".join(missing))
    else:
        record = extract_ledger_record(content, extractor)
        snapshot = derive_extracted_snapshot(
            record, source=f"{AI_SOURCE_PREFIX}{file_name}", now=now
        )

    logger.info(
        "Processed ledger %s: %d transactions, margin %.1f%%",
        snapshot.source,
        snapshot.transactions,
        snapshot.profit_margin,
    )
    return snapshot
