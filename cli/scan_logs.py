# cli/scan_logs.py
import argparse
import json
import sys

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv
from pydantic import ValidationError

from lambdas.scan_logs.app import resolve_log_groups, run_scan, scan_window
from lambdas.scan_logs.categories import CategoryConfigError, load_categories, load_top_k
from lambdas.scan_logs.formatter import format_text_report
from lambdas.scan_logs.log_source import CloudWatchLogSource
from lambdas.scan_logs.models import get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan CloudWatch log groups and summarize keyword-classified incidents."
    )
    parser.add_argument("--log-group", action="append", dest="log_groups", default=[],
                        help="Log group to scan. Repeat for several groups.")
    parser.add_argument("--pattern", action="append", dest="patterns", default=[],
                        help="Substring used to discover log groups when no --log-group is given.")
    parser.add_argument("--hours", type=float, help="How many hours back to scan.")
    parser.add_argument("--top", type=int, help="Recent entries to show per category (0 = counts only).")
    parser.add_argument("--categories", help="Path to the categories YAML file.")
    parser.add_argument("--region", help="AWS region.")
    parser.add_argument("--max-message-length", type=int, default=None,
                        help="Truncate printed messages to this many characters.")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    return parser


def main(argv=None) -> int:
    # Load environment variables from a .env file for local runs
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
        categories_file = args.categories or settings.categories_file
        categories = load_categories(categories_file)
        top_k = args.top if args.top is not None else load_top_k(categories_file, settings.top_k)
        hours_back = args.hours if args.hours is not None else settings.hours_back
        if top_k < 0 or hours_back <= 0:
            raise CategoryConfigError("--top must be >= 0 and --hours must be positive.")
    except (CategoryConfigError, ValidationError) as e:
        print(f"❌ Configuration error: {e}")
        return 2

    region = args.region or settings.aws_region
    print(f"[INFO] Scanning CloudWatch logs in {region} for the last {hours_back:g} hours")
    print("=" * 70)

    logs_client = boto3.client('logs', region_name=region)
    try:
        log_groups = resolve_log_groups(
            logs_client,
            args.log_groups or settings.log_groups,
            args.patterns or settings.log_group_patterns,
        )
    except (ClientError, BotoCoreError) as e:
        print(f"❌ Failed to list log groups: {e}")
        return 1

    if not log_groups:
        print("⚠️ No log groups to scan.")
        return 1

    source = CloudWatchLogSource(logs_client, settings.stream_limit, settings.event_limit)
    start_time, end_time = scan_window(hours_back)
    report = run_scan(source, log_groups, categories, start_time, end_time, top_k=top_k)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_text_report(report, max_message_length=args.max_message_length))
    return 0


if __name__ == "__main__":
    sys.exit(main())
