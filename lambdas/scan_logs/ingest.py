# lambdas/scan_logs/ingest.py
from typing import Any, Iterable, Mapping, Optional

from .models import IngestResult, LogEntry, resolve_timestamp


def ingest_entries(records: Iterable[Any]) -> IngestResult:
    """
    Validates raw records before classification.

    Records may be LogEntry objects or dicts shaped like CloudWatch events
    ("timestamp", "message", "logGroup"/"logStream") or like LogEntry itself.
    Records whose timestamp cannot be resolved are counted and dropped.
    """
    if records is None:
        raise TypeError("records must be an iterable of log entries, not None")

    entries = []
    invalid_count = 0
    for record in records:
        entry = _to_log_entry(record)
        if entry is None:
            invalid_count += 1
            continue
        entries.append(entry)
    return IngestResult(entries=entries, invalid_count=invalid_count)


def _to_log_entry(record: Any) -> Optional[LogEntry]:
    if isinstance(record, LogEntry):
        timestamp = resolve_timestamp(record.timestamp)
        if timestamp is None:
            return None
        return LogEntry(timestamp=timestamp, source_id=record.source_id, text=record.text or "")

    if isinstance(record, Mapping):
        timestamp = resolve_timestamp(record.get("timestamp"))
        if timestamp is None:
            return None
        text = record.get("text", record.get("message")) or ""
        return LogEntry(timestamp=timestamp, source_id=_source_id(record), text=str(text))

    return None


def _source_id(record: Mapping) -> str:
    if record.get("source_id"):
        return str(record["source_id"])
    group = record.get("logGroup", "")
    stream = record.get("logStream", "")
    if group and stream:
        return f"{group}/{stream}"
    return str(group or stream)
