"""
synapse.services.csv_export — CSV Download Bodies
==================================================

Admin screens export their tables as CSV.  The writer quotes a cell only
when it contains a comma, quote or line break and doubles any embedded
quote, so ``csv.reader`` gives back exactly what went in.  One header
line, then one record per row; an empty export is just the header.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime


def to_csv(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if cell is None else cell for cell in row])
    return output.getvalue()


def format_timestamp(value: str | None) -> str:
    """Render a stored ISO timestamp as ``YYYY-MM-DD HH:MM:SS`` (UTC)."""
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value).astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def format_amount(value: float) -> str:
    """``150.0`` → ``"150"``; fractional amounts are kept as they are."""
    return str(int(value)) if float(value).is_integer() else str(value)
