"""Unit tests for CloudWatch metrics functionality."""

from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from tg_feeds.lambda_handler import METRICS_NAMESPACE, send_cloudwatch_metrics


def sample_metrics(errors=None):
    return {
        "sync_requests": 1,
        "cache_hits": 0,
        "item_fetch_attempts": 7,
        "items_fetched": 5,
        "items_skipped": 2,
        "duplicates_dropped": 1,
        "items_returned": 4,
        "errors": errors or [],
    }


def sent_metrics(mock_cloudwatch):
    sent = []
    for call in mock_cloudwatch.put_metric_data.call_args_list:
        assert call.kwargs["Namespace"] == METRICS_NAMESPACE
        sent.extend(call.kwargs["MetricData"])
    return {metric["MetricName"]: metric for metric in sent}


class TestCloudWatchMetricsUnit:
    """Unit tests for CloudWatch metrics functionality."""

    def test_send_cloudwatch_metrics_success(self):
        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(sample_metrics(), "us-east-1", "test-exec-123")

            mock_boto_client.assert_called_with("cloudwatch", region_name="us-east-1")
            metrics = sent_metrics(mock_cloudwatch)

        assert metrics["ItemFetchAttempts"]["Value"] == 7
        assert metrics["ItemsFetched"]["Value"] == 5
        assert metrics["ItemsSkipped"]["Value"] == 2
        assert metrics["DuplicatesDropped"]["Value"] == 1
        assert metrics["ItemsReturned"]["Value"] == 4
        assert metrics["Errors"]["Value"] == 0
        assert metrics["ExecutionSuccess"]["Value"] == 1
        assert metrics["ExecutionFailure"]["Value"] == 0
        assert metrics["ItemsFetched"]["Dimensions"] == [
            {"Name": "ExecutionId", "Value": "test-exec-123"}
        ]

    def test_send_cloudwatch_metrics_with_errors(self):
        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(
                sample_metrics(errors=["Failed to fetch Telegram channel: timeout"]),
                "us-east-1",
                "test-exec-456",
            )
            metrics = sent_metrics(mock_cloudwatch)

        assert metrics["Errors"]["Value"] == 1
        assert metrics["ExecutionSuccess"]["Value"] == 0
        assert metrics["ExecutionFailure"]["Value"] == 1
        assert metrics["ExecutionFailure"]["Dimensions"] == [
            {"Name": "Status", "Value": "Failure"}
        ]

    def test_send_cloudwatch_metrics_client_error_is_swallowed(self):
        with patch("boto3.client") as mock_boto_client:
            mock_cloudwatch = Mock()
            mock_cloudwatch.put_metric_data.side_effect = ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "Access denied"}},
                "PutMetricData",
            )
            mock_boto_client.return_value = mock_cloudwatch

            send_cloudwatch_metrics(sample_metrics(), "us-east-1", "test-exec-789")

            assert mock_cloudwatch.put_metric_data.called
