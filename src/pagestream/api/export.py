"""Export API: structured export of loaded records."""

import csv
import json
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ..query.engine import PaginatedStream
from ..records.models import Record
from ..utils.time import to_utc_z, utc_now_z

EXPORT_SCHEMA_VERSION = "1"


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return to_utc_z(value) if value.tzinfo else value.isoformat()
    return value


def records_to_csv(records: Sequence[Record], columns: Sequence[str]) -> str:
    """
    Render records as CSV with a stable column order.

    Args:
        records: Records to render
        columns: Field names, in output order; missing fields render empty

    Returns:
        CSV text including the header row
    """
    output_buffer = StringIO()
    writer = csv.writer(output_buffer)
    writer.writerow(columns)
    for record in records:
        writer.writerow([_csv_value(getattr(record, col, None)) for col in columns])
    return output_buffer.getvalue()


def export_records(
    records: Sequence[Record],
    columns: Optional[Sequence[str]] = None,
    format: str = "json",
    out: Path | None = None,
) -> str:
    """
    Export records.
    
    Args:
        records: Records to export (e.g. a stream's accumulated results)
        columns: CSV columns; required for csv, ignored for json
        format: Export format ("json" or "csv")
        out: Output file path (if None, returns as string)
        
    Returns:
        Exported data as string (if out is None) or a confirmation message
    """
    if format == "json":
        export_data = {
            "export_schema_version": EXPORT_SCHEMA_VERSION,
            "exported_at_utc": utc_now_z(),
            "data": [record.model_dump(mode="json") for record in records],
        }
        output = json.dumps(export_data, indent=2, sort_keys=True)
        if out:
            out.write_text(output, encoding="utf-8")
            return f"Exported to {out}"
        return output
    elif format == "csv":
        if not columns:
            raise ValueError("CSV export requires at least one column")
        output = records_to_csv(records, columns)
        if out:
            out.write_text(output, encoding="utf-8", newline="")
            return f"Exported to {out}"
        return output
    else:
        raise ValueError(f"Unsupported format: {format}")


async def export_stream(
    stream: PaginatedStream,
    columns: Optional[Sequence[str]] = None,
    format: str = "json",
    out: Path | None = None,
    max_pages: int | None = None,
) -> str:
    """
    Load remaining pages of an initialized stream, then export its results.

    A fetch already in flight is awaited first and does not count as one of
    the additional pages.

    Args:
        stream: Stream after ``init``
        columns: CSV columns
        format: Export format ("json" or "csv")
        out: Output file path
        max_pages: Stop after this many additional pages (None loads until done)
    """
    pages_loaded = 0
    while True:
        await stream.wait_until_idle()
        if stream.done.value or (max_pages is not None and pages_loaded >= max_pages):
            break
        if stream.error.value is not None:
            raise stream.error.value
        if await stream.load_more():
            pages_loaded += 1
    if stream.error.value is not None:
        raise stream.error.value
    records: List[Record] = stream.results
    return export_records(records, columns=columns, format=format, out=out)
