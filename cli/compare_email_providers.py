# cli/compare_email_providers.py
import argparse
import sys

import boto3
from dotenv import load_dotenv

from lambdas.scan_logs.models import get_settings
from lambdas.scan_logs.providers import compare_providers, email_settings, load_env_from_s3


def print_email_settings(label: str, config: dict) -> None:
    print(f"\n[{label}] Email Configuration:")
    print("-" * 40)
    for key, value in email_settings(config).items():
        print(f"  {key}: {value}")


def main(argv=None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Compare email provider configuration of two .env files in S3.")
    parser.add_argument("--bucket", required=True, help="Bucket holding the .env files.")
    parser.add_argument("--dev-key", default="api/dev.env")
    parser.add_argument("--prod-key", default="api/prod.env")
    parser.add_argument("--region", help="AWS region.")
    args = parser.parse_args(argv)

    s3_client = boto3.client('s3', region_name=args.region or get_settings().aws_region)
    dev_config = load_env_from_s3(s3_client, args.bucket, args.dev_key)
    prod_config = load_env_from_s3(s3_client, args.bucket, args.prod_key)

    print_email_settings("DEV ENVIRONMENT", dev_config)
    print_email_settings("PROD ENVIRONMENT", prod_config)

    comparison = compare_providers(dev_config, prod_config)
    dev, prod = comparison["dev"], comparison["prod"]
    print("\n[ANALYSIS] Email Provider Comparison:")
    print(f"  Dev uses:  {dev.provider.value} ({dev.details})")
    print(f"  Prod uses: {prod.provider.value} ({prod.details})")
    if comparison["differs"]:
        print("\n[DIFFERENCE DETECTED] Environments use different email providers.")
    else:
        print(f"\n[SAME PROVIDER] Both environments use {dev.provider.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
