# lambdas/scan_logs/formatter.py
from datetime import datetime
from typing import Optional

from .models import ScanReport

# Icons for well-known categories; anything else gets the default.
CATEGORY_ICONS = {
    "storage":        "🔴",
    "error":          "⚠️",
    "ses-error":      "📧",
    "email-activity": "✉️",
}
DEFAULT_ICON = "🔹"
SEPARATOR = "-" * 50


def format_timestamp(value: Optional[datetime]) -> str:
    """
    Converts a datetime to "YYYY-MM-DD HH:MM:SS UTC".
    Returns "N/A" when there is nothing to format.
    """
    if value is None:
        return "N/A"
    return value.strftime('%Y-%m-%d %H:%M:%S %Z')


def _truncate(text: str, max_length: Optional[int]) -> str:
    if max_length is None or len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def format_text_report(report: ScanReport, max_message_length: Optional[int] = None) -> str:
    """Creates a plain text digest of a scan run."""
    lines = [
        f"Log Incident Scan: {report.total_matches} category matches across {report.total_entries} log entries.",
        f"Window: {format_timestamp(report.start_time)} -> {format_timestamp(report.end_time)}",
        "=" * 70,
    ]

    summaries = report.ordered_summaries()
    if not summaries:
        lines.append("✅ No matching log entries found in this window.")

    for summary in summaries:
        icon = CATEGORY_ICONS.get(summary.category, DEFAULT_ICON)
        lines.append(f"\n{icon} {summary.category.upper()} ({summary.total_count}):")
        for entry in summary.recent:
            lines.append(f"[{format_timestamp(entry.timestamp)}]")
            lines.append(f"Log: {entry.source_id}")
            lines.append(f"Message: {_truncate(entry.text.rstrip(), max_message_length)}")
            lines.append(SEPARATOR)
        hidden = summary.total_count - len(summary.recent)
        if hidden > 0:
            lines.append(f"... {hidden} older entries not shown")

    clean = [name for name in report.category_order if name not in report.summaries]
    if clean and summaries:
        lines.append(f"\n✅ No matches for: {', '.join(clean)}")

    if report.skipped_sources:
        lines.append(f"\n[SKIP] {len(report.skipped_sources)} sources could not be read:")
        for skip in report.skipped_sources:
            lines.append(f"  {skip.source_id}: {skip.reason}")

    if report.invalid_count:
        lines.append(f"\n[INVALID] {report.invalid_count} entries rejected (no usable timestamp).")

    lines.append(f"\nProcessed At: {format_timestamp(report.processed_at)}")
    return "\n".join(lines)


def format_sns_subject(report: ScanReport) -> str:
    """Short subject line; SNS rejects subjects over 100 characters."""
    counts = ", ".join(f"{s.category}={s.total_count}" for s in report.ordered_summaries())
    subject = f"[Alert] Log incidents: {counts}" if counts else "[Alert] Log incidents"
    return subject if len(subject) <= 100 else subject[:97] + "..."
