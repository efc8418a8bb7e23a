from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime
from io import StringIO
from typing import Any, Callable, Iterable, Sequence

BOM = "\ufeff"


@dataclass(frozen=True)
class CsvColumn:
    header: str
    accessor: Callable[[Any], Any]


def _csv_safe(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def generate_csv(rows: Iterable[Any], columns: Sequence[CsvColumn]) -> str:
    """Header line plus one line per row. Cells holding a comma, quote or newline are quoted with quotes doubled."""
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([column.header for column in columns])
    for row in rows:
        writer.writerow([_csv_safe(column.accessor(row)) for column in columns])
    return buffer.getvalue()


def csv_bytes_with_bom(text: str) -> bytes:
    # Spreadsheet apps need the BOM to detect UTF-8.
    return (BOM + text).encode("utf-8")


def filename_date(today: date | None = None) -> str:
    return (today or date.today()).isoformat()
