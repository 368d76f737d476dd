# lambdas/scan_logs/models.py
"""
Dataclass models and the pydantic settings class for the log incident scanner.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Manages env vars using Pydantic BaseSettings.
    A .env file in the working directory is read automatically.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    aws_region: str = Field("eu-central-1", alias='AWS_REGION')
    hours_back: float = Field(24, alias='SCAN_HOURS_BACK')
    top_k: int = Field(10, alias='SCAN_TOP_K')
    categories_file: str = Field("categories.yml", alias='CATEGORIES_FILE')

    # Comma separated, the same way the analyzer reads LOG_PATTERNS
    log_groups_csv: str = Field("", alias='LOG_GROUPS')
    log_group_patterns_csv: str = Field("/ecs/,/aws/ecs/,/fargate/", alias='LOG_GROUP_PATTERNS')

    stream_limit: int = Field(10, alias='STREAM_LIMIT')
    event_limit: Optional[int] = Field(None, alias='EVENT_LIMIT')
    alert_topic_arn: Optional[str] = Field(None, alias='ALERT_TOPIC_ARN')

    @field_validator('top_k')
    @classmethod
    def _check_top_k(cls, value: int) -> int:
        if value < 0:
            raise ValueError("SCAN_TOP_K must be >= 0")
        return value

    @field_validator('hours_back')
    @classmethod
    def _check_hours_back(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SCAN_HOURS_BACK must be positive")
        return value

    @property
    def log_groups(self) -> List[str]:
        return split_csv(self.log_groups_csv)

    @property
    def log_group_patterns(self) -> List[str]:
        return split_csv(self.log_group_patterns_csv)


@lru_cache()
def get_settings() -> AppSettings:
    """Returns one shared settings instance per process."""
    return AppSettings()


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def resolve_timestamp(value: Any) -> Optional[datetime]:
    """
    Turns a raw timestamp into a timezone-aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC), epoch milliseconds as
    CloudWatch reports them, and ISO 8601 strings. Returns None for anything
    that cannot be resolved.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return resolve_timestamp(datetime.fromisoformat(text.replace('Z', '+00:00')))
        except ValueError:
            return None
    return None


# Data models
@dataclass
class LogEntry:
    """
    A single log event.
    The timestamp is the time the event occurred, not when it was collected.
    """
    timestamp: Optional[datetime]
    source_id: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "source_id": self.source_id,
            "text": self.text,
        }


@dataclass(frozen=True)
class CategoryKeywordSet:
    """
    A named category and the lowercase substrings that select it.
    Qualifiers, when present, must also appear in the text for a match.
    """
    name: str
    keywords: Tuple[str, ...] = ()
    qualifiers: Tuple[str, ...] = ()

    def __post_init__(self):
        # frozen, so normalise through object.__setattr__
        object.__setattr__(self, "keywords", _normalise_keywords(self.keywords))
        object.__setattr__(self, "qualifiers", _normalise_keywords(self.qualifiers))


def _normalise_keywords(keywords) -> Tuple[str, ...]:
    if isinstance(keywords, str):
        keywords = [keywords]
    normalised = []
    for keyword in keywords:
        keyword = str(keyword).strip().lower()
        # an empty substring would match every entry
        if keyword and keyword not in normalised:
            normalised.append(keyword)
    return tuple(normalised)


@dataclass
class ClassifiedEntry:
    entry: LogEntry
    categories: Tuple[str, ...] = ()


@dataclass
class IncidentSummary:
    """
    Per-category result: total_count covers every match, recent holds
    at most top_k entries, newest first.
    """
    category: str
    total_count: int
    recent: List[LogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "total_count": self.total_count,
            "recent": [entry.to_dict() for entry in self.recent],
        }


@dataclass
class SkipReason:
    """A sub-fetch (log group or stream) that could not be read."""
    source_id: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"source_id": self.source_id, "reason": self.reason}


@dataclass
class FetchOutcome:
    """
    Result of one sub-fetch: either entries or a skip reason.
    """
    source_id: str
    entries: List[LogEntry] = field(default_factory=list)
    skipped: Optional[SkipReason] = None

    @classmethod
    def ok(cls, source_id: str, entries: List[LogEntry]) -> "FetchOutcome":
        return cls(source_id=source_id, entries=list(entries))

    @classmethod
    def skip(cls, source_id: str, reason: str) -> "FetchOutcome":
        return cls(source_id=source_id, skipped=SkipReason(source_id, reason))

    def __bool__(self) -> bool:
        """Allows `if outcome:` to mean the fetch succeeded."""
        return self.skipped is None


@dataclass
class IngestResult:
    entries: List[LogEntry]
    invalid_count: int = 0


@dataclass
class ScanReport:
    """
    Represents the final structure produced by one scan run.
    """
    summaries: Dict[str, IncidentSummary]
    total_entries: int
    invalid_count: int = 0
    skipped_sources: List[SkipReason] = field(default_factory=list)
    category_order: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_matches(self) -> int:
        return sum(summary.total_count for summary in self.summaries.values())

    def ordered_summaries(self) -> List[IncidentSummary]:
        """Summaries in configured category order, unknown categories last."""
        ordered = [self.summaries[name] for name in self.category_order if name in self.summaries]
        ordered.extend(s for name, s in self.summaries.items() if name not in self.category_order)
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries": self.total_entries,
            "invalid_count": self.invalid_count,
            "skipped_count": len(self.skipped_sources),
            "skipped_sources": [skip.to_dict() for skip in self.skipped_sources],
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "processed_at": self.processed_at.isoformat(),
            "summaries": {s.category: s.to_dict() for s in self.ordered_summaries()},
        }
