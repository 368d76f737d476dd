# lambdas/scan_logs/app.py
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import boto3
from pydantic import ValidationError

from .aggregator import DEFAULT_TOP_K, summarize
from .categories import CategoryConfigError, load_categories, load_top_k
from .classifier import classify
from .formatter import format_sns_subject, format_text_report
from .ingest import ingest_entries
from .log_source import CloudWatchLogSource, LogEventSource, discover_log_groups
from .models import AppSettings, CategoryKeywordSet, ScanReport, SkipReason, get_settings


class InvalidScanRequestError(ValueError):
    """Raised when a handler event carries unusable overrides."""
    pass


def scan_window(hours_back: float, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Returns the half-open window [now - hours_back, now)."""
    end_time = now or datetime.now(timezone.utc)
    return end_time - timedelta(hours=hours_back), end_time


def analyze(records: Iterable[Any],
            categories: Sequence[CategoryKeywordSet],
            top_k: int = DEFAULT_TOP_K,
            skipped: Optional[List[SkipReason]] = None) -> ScanReport:
    """
    Runs ingestion, classification and summarisation over in-memory records.
    """
    ingested = ingest_entries(records)
    classified = classify(ingested.entries, categories)
    summaries = summarize(classified, top_k=top_k)

    return ScanReport(
        summaries=summaries,
        total_entries=len(ingested.entries),
        invalid_count=ingested.invalid_count,
        skipped_sources=list(skipped or []),
        category_order=[c.name for c in categories],
    )


def run_scan(source: LogEventSource,
             source_ids: Iterable[str],
             categories: Sequence[CategoryKeywordSet],
             start_time: datetime,
             end_time: datetime,
             top_k: int = DEFAULT_TOP_K) -> ScanReport:
    """Collects events from the source and analyzes them."""
    collected = source.collect(source_ids, start_time, end_time)
    report = analyze(collected.entries, categories, top_k=top_k, skipped=collected.skipped)
    report.start_time = start_time
    report.end_time = end_time

    print(
        f"Scan complete: {report.total_entries} entries, {report.total_matches} matches, "
        f"{report.invalid_count} invalid, {len(report.skipped_sources)} skipped sources."
    )
    return report


def resolve_log_groups(logs_client, log_groups: List[str], patterns: List[str]) -> List[str]:
    """Explicit log groups win; otherwise groups are discovered by name pattern."""
    if log_groups:
        return log_groups
    return discover_log_groups(logs_client, patterns)


def _parse_overrides(event: Dict[str, Any], settings: AppSettings, default_top_k: int) -> Dict[str, Any]:
    """Reads optional scan overrides from a manual invoke or EventBridge detail."""
    overrides = event.get('detail') if isinstance(event.get('detail'), dict) else event

    log_groups = overrides.get('log_groups', settings.log_groups)
    patterns = overrides.get('log_group_patterns', settings.log_group_patterns)
    if not isinstance(log_groups, list) or not isinstance(patterns, list):
        raise InvalidScanRequestError("'log_groups' and 'log_group_patterns' must be lists.")

    hours_back = overrides.get('hours_back', settings.hours_back)
    if isinstance(hours_back, bool) or not isinstance(hours_back, (int, float)):
        raise InvalidScanRequestError("'hours_back' must be a number.")
    top_k = overrides.get('top_k', default_top_k)
    if isinstance(top_k, bool) or not isinstance(top_k, int):
        raise InvalidScanRequestError("'top_k' must be an integer.")

    if hours_back <= 0:
        raise InvalidScanRequestError("'hours_back' must be positive.")
    if top_k < 0:
        raise InvalidScanRequestError("'top_k' must be >= 0.")

    return {"log_groups": log_groups, "patterns": patterns, "hours_back": hours_back, "top_k": top_k}


def publish_alert(sns_client, topic_arn: str, report: ScanReport) -> None:
    """Sends the text digest to SNS. Failures are re-raised to the caller."""
    try:
        print(f"Publishing incident digest with {len(report.summaries)} categories to {topic_arn}...")
        sns_client.publish(
            TopicArn=topic_arn,
            Message=format_text_report(report),
            Subject=format_sns_subject(report),
        )
        print("✅ Successfully published incident digest.")
    except Exception as e:
        print(f"❌ CRITICAL: Failed to publish incident digest to SNS. Error: {e}")
        raise e


def build_response(status_code: int, body: dict) -> dict:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body, default=str),
    }


def handler(event: Dict[str, Any], context: object) -> Dict[str, Any]:
    """
    Scheduled (EventBridge) or manually invoked scan of CloudWatch log groups.
    """
    print(f"Received event: {json.dumps(event, default=str)}")
    event = event or {}

    try:
        settings = get_settings()
        categories = load_categories(settings.categories_file)
        default_top_k = load_top_k(settings.categories_file, settings.top_k)
        request = _parse_overrides(event, settings, default_top_k)
    except (InvalidScanRequestError, CategoryConfigError, ValidationError) as e:
        print(f"Validation Error: {e}")
        return build_response(400, {'message': str(e)})

    try:
        logs_client = boto3.client('logs', region_name=settings.aws_region)
        log_groups = resolve_log_groups(logs_client, request['log_groups'], request['patterns'])
        if not log_groups:
            print("ℹ️ No log groups matched. Nothing to scan.")
            return build_response(200, {'message': 'No log groups matched.', 'log_groups': []})

        source = CloudWatchLogSource(logs_client, settings.stream_limit, settings.event_limit)
        start_time, end_time = scan_window(request['hours_back'])
        report = run_scan(source, log_groups, categories, start_time, end_time, top_k=request['top_k'])

        if settings.alert_topic_arn and report.summaries:
            sns_client = boto3.client('sns', region_name=settings.aws_region)
            publish_alert(sns_client, settings.alert_topic_arn, report)

        return build_response(200, {'log_groups': log_groups, 'report': report.to_dict()})

    except Exception as e:
        print(f"Internal Server Error: {e}")
        return build_response(500, {'message': 'An internal error occurred during the scan.'})
