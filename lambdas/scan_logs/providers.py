# lambdas/scan_logs/providers.py
"""
Email provider detection for `.env` style configuration files.

Detection walks a fixed precedence list of detectors; the first one that
recognises the configuration wins.
"""
import io
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError
from dotenv import dotenv_values

MAIL_KEY_MARKERS = ('mail', 'smtp', 'email', 'sendgrid', 'ses')
SECRET_KEY_MARKERS = ('pass', 'key', 'secret')


class EmailProvider(Enum):
    SENDGRID = "SendGrid"
    SES = "SES"
    GMAIL_SMTP = "Gmail SMTP"
    OUTLOOK_SMTP = "Outlook SMTP"
    YAHOO_SMTP = "Yahoo SMTP"
    CUSTOM_SMTP = "Custom SMTP"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ProviderMatch:
    provider: EmailProvider
    details: str


def parse_env_file(content: str) -> Dict[str, str]:
    """Parses .env content; keys without a value map to an empty string."""
    values = dotenv_values(stream=io.StringIO(content), interpolate=False)
    return {key: value or "" for key, value in values.items()}


def _detect_sendgrid(config: Dict[str, str]) -> Optional[ProviderMatch]:
    if any('sendgrid' in k.lower() for k in config):
        api_key = config.get('SENDGRID_API_KEY') or config.get('SENDGRID_KEY')
        return ProviderMatch(EmailProvider.SENDGRID, "API Key configured" if api_key else "Configuration found")
    return None


def _detect_ses(config: Dict[str, str]) -> Optional[ProviderMatch]:
    host = config.get('MAIL_HOST', '')
    if any('ses' in k.lower() for k in config) or 'amazonaws' in host.lower():
        return ProviderMatch(EmailProvider.SES, f"Host: {host or 'Not configured'}")
    return None


_SMTP_HOST_FAMILIES: List[Tuple[Tuple[str, ...], EmailProvider]] = [
    (('gmail',), EmailProvider.GMAIL_SMTP),
    (('outlook', 'hotmail'), EmailProvider.OUTLOOK_SMTP),
    (('yahoo',), EmailProvider.YAHOO_SMTP),
]


def _detect_smtp_host(config: Dict[str, str]) -> Optional[ProviderMatch]:
    host = config.get('MAIL_HOST', '').lower()
    if not host:
        return None
    for markers, provider in _SMTP_HOST_FAMILIES:
        if any(marker in host for marker in markers):
            return ProviderMatch(provider, host)
    return ProviderMatch(EmailProvider.CUSTOM_SMTP, host)


# Order matters: the first detector that returns a match wins.
DETECTION_PRECEDENCE: List[Callable[[Dict[str, str]], Optional[ProviderMatch]]] = [
    _detect_sendgrid,
    _detect_ses,
    _detect_smtp_host,
]


def detect_email_provider(config: Dict[str, str]) -> ProviderMatch:
    for detector in DETECTION_PRECEDENCE:
        match = detector(config)
        if match:
            return match
    return ProviderMatch(EmailProvider.UNKNOWN, "No email configuration detected")


def email_settings(config: Dict[str, str]) -> Dict[str, str]:
    """Mail-related keys only, with secret values cut to 8 characters."""
    result = {}
    for key, value in config.items():
        lowered = key.lower()
        if not any(marker in lowered for marker in MAIL_KEY_MARKERS):
            continue
        if any(marker in lowered for marker in SECRET_KEY_MARKERS):
            value = f"{value[:8]}..."
        result[key] = value
    return result


def load_env_from_s3(s3_client, bucket: str, key: str) -> Dict[str, str]:
    """Reads and parses a .env object from S3. Returns {} if it cannot be read."""
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        content = response['Body'].read().decode('utf-8')
    except ClientError as e:
        print(f"❌ Cannot read s3://{bucket}/{key}: {e.response['Error'].get('Message', e)}")
        return {}
    return parse_env_file(content)


def compare_providers(dev_config: Dict[str, str], prod_config: Dict[str, str]) -> Dict[str, object]:
    dev = detect_email_provider(dev_config)
    prod = detect_email_provider(prod_config)
    return {"dev": dev, "prod": prod, "differs": dev.provider != prod.provider}
