import csv
from datetime import date
from decimal import Decimal
from enum import Enum
from io import StringIO
from typing import Any, Iterable, Sequence


def format_cell(value: Any) -> str:
    """Spreadsheet-friendly rendering: blanks for missing values, two decimals for money."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def rows_to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows([format_cell(value) for value in row] for row in rows)
    return buffer.getvalue()
