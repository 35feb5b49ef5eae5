from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from query_monitor.core.config import settings
from query_monitor.domain.models import ExportPayload, Sample
from query_monitor.metrics.fingerprint import serialize_query

CSV_HEADER = ["Timestamp", "Model", "Operation", "Duration (ms)", "Query"]
MIME_TYPES = {"csv": "text/csv", "json": "application/json"}


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_duration(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def csv_row(sample: Sample) -> List[str]:
    return [
        iso_timestamp(sample.timestamp),
        sample.model,
        sample.operation,
        format_duration(sample.duration_ms),
        serialize_query(sample.query),
    ]


def to_csv(samples: Sequence[Sample]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(csv_row(s) for s in samples)
    return buf.getvalue().rstrip("\n")


def to_json(samples: Sequence[Sample]) -> str:
    rows = [s.model_dump(mode="json", by_alias=True) for s in samples]
    return json.dumps(rows, indent=2, ensure_ascii=False)


def export_samples(
    samples: Sequence[Sample], fmt: str, today: Optional[date] = None
) -> ExportPayload:
    """Render exactly the given (already filtered and sorted) samples."""
    fmt = fmt.lower()
    if fmt not in MIME_TYPES:
        raise ValueError(f"Unsupported export format: {fmt}")
    today = today or datetime.now(timezone.utc).date()
    content = to_csv(samples) if fmt == "csv" else to_json(samples)
    return ExportPayload(
        content=content,
        filename=f"{settings.export_filename_prefix}-{today.isoformat()}.{fmt}",
        mime_type=MIME_TYPES[fmt],
    )
