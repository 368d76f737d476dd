# tests/test_scan_handler.py
import json
import os
import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from lambdas.scan_logs import app as scan_app
from lambdas.scan_logs.models import get_settings

NOW_MS = int(datetime.now(timezone.utc).timestamp() * 1000)

SCAN_ENV = {
    "AWS_REGION": "eu-central-1",
    "LOG_GROUPS": "/ecs/upscend-dev-api-td",
    "CATEGORIES_FILE": "does-not-exist.yml",
    "SCAN_TOP_K": "5",
}


def fake_logs_client() -> MagicMock:
    client = MagicMock()
    client.describe_log_streams.return_value = {"logStreams": [{"logStreamName": "ecs/api/abc"}]}
    client.get_log_events.return_value = {
        "events": [
            {"timestamp": NOW_MS - 60_000, "message": "ERROR: ENOSPC no space left on device"},
            {"timestamp": NOW_MS - 30_000, "message": "SMTP send failed: timeout"},
            {"timestamp": NOW_MS - 10_000, "message": "GET /health 200"},
        ],
        "nextForwardToken": None,
    }
    return client


class TestScanHandler(unittest.TestCase):

    def setUp(self):
        get_settings.cache_clear()

    def tearDown(self):
        get_settings.cache_clear()

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_handler_returns_report(self, mock_boto_client):
        logs_client = fake_logs_client()
        mock_boto_client.return_value = logs_client

        response = scan_app.handler({}, None)

        self.assertEqual(response["statusCode"], 200)
        body = json.loads(response["body"])
        self.assertEqual(body["log_groups"], ["/ecs/upscend-dev-api-td"])
        summaries = body["report"]["summaries"]
        self.assertEqual(summaries["storage"]["total_count"], 1)
        self.assertEqual(summaries["error"]["total_count"], 2)
        self.assertEqual(summaries["ses-error"]["total_count"], 1)
        self.assertEqual(body["report"]["total_entries"], 3)
        mock_boto_client.assert_called_once_with('logs', region_name='eu-central-1')

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, {**SCAN_ENV, "ALERT_TOPIC_ARN": "arn:aws:sns:eu-central-1:123456789012:incidents"})
    def test_handler_publishes_digest_when_topic_configured(self, mock_boto_client):
        logs_client, sns_client = fake_logs_client(), MagicMock()
        mock_boto_client.side_effect = lambda service, **kwargs: logs_client if service == 'logs' else sns_client

        response = scan_app.handler({}, None)

        self.assertEqual(response["statusCode"], 200)
        sns_client.publish.assert_called_once()
        publish_args = sns_client.publish.call_args.kwargs
        self.assertEqual(publish_args["TopicArn"], "arn:aws:sns:eu-central-1:123456789012:incidents")
        self.assertIn("STORAGE (1)", publish_args["Message"])
        self.assertLessEqual(len(publish_args["Subject"]), 100)

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_event_overrides_are_applied(self, mock_boto_client):
        mock_boto_client.return_value = fake_logs_client()

        response = scan_app.handler({"log_groups": ["/ecs/other-td"], "top_k": 0, "hours_back": 1}, None)

        body = json.loads(response["body"])
        self.assertEqual(body["log_groups"], ["/ecs/other-td"])
        self.assertEqual(body["report"]["summaries"]["error"]["recent"], [])
        self.assertEqual(body["report"]["summaries"]["error"]["total_count"], 2)

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_invalid_overrides_return_400(self, mock_boto_client):
        response = scan_app.handler({"top_k": -3}, None)

        self.assertEqual(response["statusCode"], 400)
        mock_boto_client.assert_not_called()

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_non_integer_top_k_returns_400(self, mock_boto_client):
        for top_k in (1.7, True, "3"):
            with self.subTest(top_k=top_k):
                response = scan_app.handler({"top_k": top_k}, None)

                self.assertEqual(response["statusCode"], 400)
                self.assertIn("top_k", json.loads(response["body"])["message"])
        mock_boto_client.assert_not_called()

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_boolean_hours_back_returns_400(self, mock_boto_client):
        response = scan_app.handler({"hours_back": True}, None)

        self.assertEqual(response["statusCode"], 400)
        mock_boto_client.assert_not_called()

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, SCAN_ENV)
    def test_unreadable_group_is_reported_as_skipped(self, mock_boto_client):
        client = MagicMock()
        client.describe_log_streams.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "DescribeLogStreams"
        )
        mock_boto_client.return_value = client

        response = scan_app.handler({}, None)

        self.assertEqual(response["statusCode"], 200)
        report = json.loads(response["body"])["report"]
        self.assertEqual(report["skipped_count"], 1)
        self.assertEqual(report["summaries"], {})

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, {**SCAN_ENV, "LOG_GROUPS": "", "LOG_GROUP_PATTERNS": "/nothing/"})
    def test_no_matching_groups(self, mock_boto_client):
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = [{"logGroups": [{"logGroupName": "/ecs/a"}]}]
        mock_boto_client.return_value = client

        response = scan_app.handler({}, None)

        self.assertEqual(response["statusCode"], 200)
        self.assertEqual(json.loads(response["body"])["log_groups"], [])
        client.describe_log_streams.assert_not_called()

    @patch('lambdas.scan_logs.app.boto3.client')
    @patch.dict(os.environ, {**SCAN_ENV, "ALERT_TOPIC_ARN": "arn:aws:sns:eu-central-1:123456789012:incidents"})
    def test_sns_failure_returns_500(self, mock_boto_client):
        logs_client, sns_client = fake_logs_client(), MagicMock()
        sns_client.publish.side_effect = ClientError({"Error": {"Code": "AuthorizationError"}}, "Publish")
        mock_boto_client.side_effect = lambda service, **kwargs: logs_client if service == 'logs' else sns_client

        response = scan_app.handler({}, None)

        self.assertEqual(response["statusCode"], 500)
        self.assertNotIn("AuthorizationError", response["body"])


if __name__ == '__main__':
    unittest.main()
