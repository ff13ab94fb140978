from __future__ import annotations

import csv
import io
from typing import Any, Iterable

HISTORY_COLUMNS = [
    ("effective_date", "Effective date"),
    ("location_name", "Dropping point"),
    ("category", "Category"),
    ("price", "Price"),
    ("created_by_name", "Set by"),
    ("created_at", "Recorded at"),
]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_price_history_csv(rows: Iterable[dict[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow([label for _, label in HISTORY_COLUMNS])
    for row in rows:
        writer.writerow([_cell(row.get(key)) for key, _ in HISTORY_COLUMNS])
    return output.getvalue()
