"""
Provenance stamping for history CSV documents.

A freshly collected history document carries no record of when each row was
first seen. Merging it against the previous stored version copies the earlier
stamp for every row whose natural key was already present and stamps new rows
with the collection date.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from core.clock import as_utc
from core.errors import InvalidRowsError
from ingestion.history_schema import (
    COL_DATA_COLLECTED_AT,
    REQUIRED_COLUMNS,
    STAMP_DATE_FORMAT,
    STAMPED_COLUMNS,
    MatchResultRow,
    NaturalMatchKey,
)

logger = logging.getLogger(__name__)


def format_stamp(now: datetime) -> str:
    return as_utc(now).strftime(STAMP_DATE_FORMAT)


def has_provenance_column(csv_content: str) -> bool:
    """True if the header has a column named like the provenance column (case-insensitive)."""
    for line in csv_content.split("\n"):
        if line.strip("\r"):
            try:
                header = next(csv.reader([line.rstrip("\r")]), [])
            except csv.Error:
                return False
            wanted = COL_DATA_COLLECTED_AT.lower()
            return any(field.strip().lower() == wanted for field in header)
    return False


def _stamp_map(previous_rows: Iterable[MatchResultRow]) -> Dict[NaturalMatchKey, str]:
    stamps: Dict[NaturalMatchKey, str] = {}
    for row in previous_rows:
        if row.data_collected_at is None:
            continue
        # Later occurrences of a duplicated key win.
        stamps[row.natural_key] = row.data_collected_at
    return stamps


def merge_rows(
    new_rows: Sequence[MatchResultRow],
    previous_rows: Iterable[MatchResultRow],
    now: datetime,
) -> List[MatchResultRow]:
    """
    Stamp new_rows with provenance. Output has the same order and length as new_rows.

    A row whose natural key appears in previous_rows keeps the previous stamp;
    any other row is stamped with the date of `now`.
    """
    stamps = _stamp_map(previous_rows)
    today = format_stamp(now)
    merged: List[MatchResultRow] = []
    for row in new_rows:
        stamp = stamps.get(row.natural_key, today)
        merged.append(row.model_copy(update={"data_collected_at": stamp}))
    return merged


def parse_rows(csv_content: str) -> List[MatchResultRow]:
    """Parse a history CSV into rows. Raises InvalidRowsError on malformed input."""
    reader = csv.DictReader(io.StringIO(csv_content))
    try:
        header = reader.fieldnames
        if not header:
            raise InvalidRowsError("CSV has no header row")
        missing = [c for c in REQUIRED_COLUMNS if c not in header]
        if missing:
            raise InvalidRowsError(f"CSV is missing required columns: {', '.join(missing)}")
        rows: List[MatchResultRow] = []
        for record in reader:
            # DictReader keys surplus fields under None and fills short rows with None
            if None in record or any(v is None for v in record.values()):
                raise InvalidRowsError(f"Line {reader.line_num} does not have {len(header)} fields")
            rows.append(MatchResultRow.from_csv_record(record))
    except csv.Error as exc:
        raise InvalidRowsError(f"CSV parse error: {exc}") from exc
    return rows


def _previous_rows(previous_csv_content: Optional[str]) -> List[MatchResultRow]:
    if previous_csv_content is None or not has_provenance_column(previous_csv_content):
        return []
    try:
        return parse_rows(previous_csv_content)
    except InvalidRowsError as exc:
        logger.warning("Previous history document is malformed; no stamps carried over: %s", exc)
        return []


def render_rows(rows: Sequence[MatchResultRow]) -> str:
    extra_columns: List[str] = []
    for row in rows:
        for name in row.extra:
            if name not in extra_columns:
                extra_columns.append(name)
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=STAMPED_COLUMNS + extra_columns, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow(row.to_csv_record())
    return buf.getvalue()


def add_data_collected_at(
    csv_content: str,
    previous_csv_content: Optional[str],
    now: datetime,
) -> str:
    """
    Return csv_content with the provenance column filled in.

    Already-stamped input comes back unchanged. Input that does not parse as a
    history CSV also comes back unchanged, with a warning logged.
    """
    if has_provenance_column(csv_content):
        return csv_content
    try:
        new_rows = parse_rows(csv_content)
    except InvalidRowsError as exc:
        logger.warning("History CSV could not be parsed, leaving it unstamped: %s", exc)
        return csv_content
    merged = merge_rows(new_rows, _previous_rows(previous_csv_content), now)
    return render_rows(merged)
