# lambdas/scan_logs/log_source.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .models import FetchOutcome, LogEntry, SkipReason, resolve_timestamp


@dataclass
class CollectedEvents:
    entries: List[LogEntry] = field(default_factory=list)
    skipped: List[SkipReason] = field(default_factory=list)


class LogEventSource(ABC):
    """
    Produces log entries for a source id within a half-open [start, end) window.

    fetch() yields one FetchOutcome per sub-fetch (e.g. per stream). A failed
    sub-fetch is an outcome with a skip reason, never an exception, so one
    unreadable stream does not abort the scan. Calling fetch() again restarts
    the sequence.
    """

    @abstractmethod
    def fetch(self, source_id: str, start_time: datetime, end_time: datetime) -> Iterator[FetchOutcome]:
        raise NotImplementedError

    def collect(self, source_ids: Iterable[str], start_time: datetime, end_time: datetime) -> CollectedEvents:
        """Drains every sub-fetch into one list of entries plus the skipped sources."""
        collected = CollectedEvents()
        for source_id in source_ids:
            for outcome in self.fetch(source_id, start_time, end_time):
                if not outcome:
                    collected.skipped.append(outcome.skipped)
                    continue
                collected.entries.extend(
                    e for e in outcome.entries if _in_window(e.timestamp, start_time, end_time)
                )
        return collected


def _in_window(timestamp, start_time: datetime, end_time: datetime) -> bool:
    # Entries without a resolvable timestamp are passed on so ingestion can count them.
    resolved = resolve_timestamp(timestamp)
    if resolved is None:
        return True
    return resolve_timestamp(start_time) <= resolved < resolve_timestamp(end_time)


class StaticLogSource(LogEventSource):
    """In-memory source keyed by source id, used for local runs and tests."""

    def __init__(self, entries: Iterable[LogEntry]):
        self.entries = list(entries)

    def fetch(self, source_id: str, start_time: datetime, end_time: datetime) -> Iterator[FetchOutcome]:
        matching = [e for e in self.entries if e.source_id == source_id or e.source_id.startswith(source_id + "/")]
        yield FetchOutcome.ok(source_id, matching)


class CloudWatchLogSource(LogEventSource):
    """
    Reads events from CloudWatch Logs through an explicit boto3 'logs' client.

    The most recently active streams of a group are read one by one. A group
    or stream that cannot be read is reported as a skipped source carrying the
    AWS error code.
    """

    def __init__(self, client, stream_limit: int = 10, event_limit: Optional[int] = None):
        self.client = client
        self.stream_limit = stream_limit
        self.event_limit = event_limit

    def fetch(self, source_id: str, start_time: datetime, end_time: datetime) -> Iterator[FetchOutcome]:
        try:
            response = self.client.describe_log_streams(
                logGroupName=source_id,
                orderBy='LastEventTime',
                descending=True,
                limit=self.stream_limit,
            )
        except ClientError as e:
            print(f" -> ⚠️ [SKIP] Cannot access log group {source_id}: {_error_code(e)}")
            yield FetchOutcome.skip(source_id, _error_code(e))
            return
        except BotoCoreError as e:
            print(f" -> ⚠️ [SKIP] Cannot access log group {source_id}: {e}")
            yield FetchOutcome.skip(source_id, type(e).__name__)
            return

        streams = response.get('logStreams', [])
        print(f" -> Reading {len(streams)} streams from {source_id}")
        for stream in streams:
            stream_name = stream['logStreamName']
            stream_id = f"{source_id}/{stream_name}"
            try:
                events = self._read_stream(source_id, stream_name, start_time, end_time)
            except ClientError as e:
                print(f" -> ⚠️ [SKIP] Cannot read stream {stream_name}: {_error_code(e)}")
                yield FetchOutcome.skip(stream_id, _error_code(e))
                continue
            except BotoCoreError as e:
                print(f" -> ⚠️ [SKIP] Cannot read stream {stream_name}: {e}")
                yield FetchOutcome.skip(stream_id, type(e).__name__)
                continue

            entries = [
                LogEntry(
                    timestamp=resolve_timestamp(event.get('timestamp')),
                    source_id=stream_id,
                    text=event.get('message', ''),
                )
                for event in events
            ]
            yield FetchOutcome.ok(stream_id, entries)

    def _read_stream(self, group: str, stream: str, start_time: datetime, end_time: datetime) -> List[dict]:
        """
        Pages forward through one stream. CloudWatch signals the last page by
        returning the same forward token that was sent.
        """
        params = {
            'logGroupName': group,
            'logStreamName': stream,
            'startTime': _to_millis(start_time),
            'endTime': _to_millis(end_time),
            'startFromHead': True,
        }
        if self.event_limit:
            params['limit'] = self.event_limit

        events: List[dict] = []
        token = None
        while True:
            if token:
                params['nextToken'] = token
            response = self.client.get_log_events(**params)
            events.extend(response.get('events', []))

            if self.event_limit and len(events) >= self.event_limit:
                return events[:self.event_limit]

            next_token = response.get('nextForwardToken')
            if not next_token or next_token == token:
                return events
            token = next_token


def discover_log_groups(client, patterns: Iterable[str]) -> List[str]:
    """
    Lists every log group whose name contains one of the patterns
    (case-insensitive). With no patterns every group is returned.
    """
    lowered = [p.lower() for p in patterns if p]
    names = []
    paginator = client.get_paginator('describe_log_groups')
    for page in paginator.paginate():
        for group in page.get('logGroups', []):
            name = group['logGroupName']
            if not lowered or any(p in name.lower() for p in lowered):
                names.append(name)
    print(f" -> Found {len(names)} matching log groups.")
    return names


def _to_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _error_code(e: ClientError) -> str:
    return e.response.get('Error', {}).get('Code') or str(e)
