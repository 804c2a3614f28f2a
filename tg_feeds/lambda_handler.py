"""Lambda handler serving Telegram channels as RSS feeds."""

import json
import os
import re
from datetime import UTC, datetime
from typing import Any

import boto3

from .config import Config
from .errors import ChannelFetchError, StoreError
from .feed import CONTENT_TYPE, build_feed
from .fetcher import TelegramWebFetcher
from .logging_config import create_execution_logger, setup_structured_logging
from .models import SyncReport
from .store import DynamoDBStore
from .sync import Synchronizer

# Setup structured logging
setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))

CHANNEL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,64}$")
METRICS_NAMESPACE = "Telegram-Feeds"


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Route an API Gateway proxy request.

    ``GET /ping`` answers a fixed payload, ``GET /<channel>`` synchronizes the
    channel and returns its RSS feed.

    Args:
        event: API Gateway proxy event (REST or HTTP API)
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    path = request_path(event)

    if path == "/ping":
        return json_response(200, {"message": "pong"})

    channel_name = path.strip("/")
    if "/" in channel_name or not channel_name:
        return json_response(
            404, {"message": "Not found", "execution_id": execution_id}
        )

    return serve_channel(channel_name, execution_id, context)


def serve_channel(channel_name: str, execution_id: str, context: Any = None) -> dict[str, Any]:
    """Synchronize a channel and render it, mapping failures to HTTP statuses."""
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(
        channel_name=channel_name,
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
    )

    if not CHANNEL_NAME_PATTERN.match(channel_name):
        main_logger.warning("Rejected channel name", channel_name=channel_name)
        main_logger.log_execution_end(success=False, channel_name=channel_name)
        return json_response(
            400,
            {
                "message": "Invalid channel name",
                "error": f"Channel name must match {CHANNEL_NAME_PATTERN.pattern}",
                "execution_id": execution_id,
            },
        )

    metrics = {
        "sync_requests": 1,
        "cache_hits": 0,
        "item_fetch_attempts": 0,
        "items_fetched": 0,
        "items_skipped": 0,
        "duplicates_dropped": 0,
        "items_returned": 0,
        "errors": [],
    }

    config = None
    try:
        config = Config()
        synchronizer = build_synchronizer(config, execution_id)
        result = synchronizer.sync(channel_name)
        update_metrics(metrics, result.report)
        body = build_feed(result.channel, result.items)
    except ChannelFetchError as e:
        return failure_response(
            502, "Failed to fetch Telegram channel", e, metrics, config, main_logger
        )
    except StoreError as e:
        return failure_response(
            500, "Failed to update feed cache", e, metrics, config, main_logger
        )
    except Exception as e:
        return failure_response(
            500, "Critical error in Lambda handler", e, metrics, config, main_logger
        )

    main_logger.log_metrics(metrics)
    if config.enable_metrics:
        send_cloudwatch_metrics(metrics, config.aws_region, execution_id)
    main_logger.log_execution_end(success=True, channel_name=channel_name)

    return {
        "statusCode": 200,
        "headers": {"Content-Type": CONTENT_TYPE},
        "body": body.decode("utf-8"),
    }


def build_synchronizer(config: Config, execution_id: str) -> Synchronizer:
    """Wire the t.me fetcher and DynamoDB store into a synchronizer."""
    fetcher = TelegramWebFetcher(config.get_fetcher_config(), execution_id=execution_id)
    store = DynamoDBStore(config.get_store_config(), execution_id=execution_id)
    return Synchronizer(
        fetcher,
        store,
        logger=create_execution_logger("synchronizer", execution_id),
    )


def update_metrics(metrics: dict[str, Any], report: SyncReport) -> None:
    metrics["cache_hits"] += 1 if report.fresh else 0
    metrics["item_fetch_attempts"] += report.fetch_attempts
    metrics["items_fetched"] += report.items_fetched
    metrics["items_skipped"] += report.items_skipped
    metrics["duplicates_dropped"] += report.duplicates_dropped
    metrics["items_returned"] += report.items_returned


def failure_response(
    status_code: int,
    message: str,
    error: Exception,
    metrics: dict[str, Any],
    config: Config | None,
    main_logger,
) -> dict[str, Any]:
    error_msg = f"{message}: {error}"
    main_logger.error(error_msg, error=str(error), error_type=type(error).__name__)
    metrics["errors"].append(error_msg)

    if config is not None and config.enable_metrics:
        send_cloudwatch_metrics(metrics, config.aws_region, main_logger.execution_id)

    main_logger.log_execution_end(success=False, error=error_msg)
    return json_response(
        status_code,
        {
            "message": message,
            "error": str(error),
            "execution_id": main_logger.execution_id,
        },
    )


def request_path(event: dict[str, Any]) -> str:
    """Return the request path of a REST (v1) or HTTP API (v2) event."""
    params = event.get("pathParameters") or {}
    if params.get("channel"):
        return "/" + params["channel"]
    return event.get("rawPath") or event.get("path") or "/"


def json_response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def send_cloudwatch_metrics(
    metrics: dict[str, Any], aws_region: str, execution_id: str
) -> None:
    """
    Send custom metrics to CloudWatch.

    Args:
        metrics: Dictionary containing execution metrics
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)

    try:
        metrics_logger.info("Sending metrics to CloudWatch", metrics=metrics)
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)

        total_errors = len(metrics["errors"])
        execution_success = total_errors == 0
        status = "Success" if execution_success else "Failure"

        counters = [
            ("SyncRequests", metrics["sync_requests"]),
            ("CacheHits", metrics["cache_hits"]),
            ("ItemFetchAttempts", metrics["item_fetch_attempts"]),
            ("ItemsFetched", metrics["items_fetched"]),
            ("ItemsSkipped", metrics["items_skipped"]),
            ("DuplicatesDropped", metrics["duplicates_dropped"]),
            ("ItemsReturned", metrics["items_returned"]),
            ("Errors", total_errors),
        ]
        metric_data = [
            {
                "MetricName": name,
                "Value": value,
                "Unit": "Count",
                "Dimensions": [{"Name": "ExecutionId", "Value": execution_id}],
            }
            for name, value in counters
        ]
        metric_data += [
            {
                "MetricName": "ExecutionSuccess",
                "Value": 1 if execution_success else 0,
                "Unit": "Count",
                "Dimensions": [{"Name": "Status", "Value": status}],
            },
            {
                "MetricName": "ExecutionFailure",
                "Value": 0 if execution_success else 1,
                "Unit": "Count",
                "Dimensions": [{"Name": "Status", "Value": status}],
            },
        ]

        # CloudWatch accepts at most 20 metrics per call
        batch_size = 20
        for i in range(0, len(metric_data), batch_size):
            batch = metric_data[i : i + batch_size]
            cloudwatch.put_metric_data(Namespace=METRICS_NAMESPACE, MetricData=batch)
            metrics_logger.debug(f"Sent batch of {len(batch)} metrics to CloudWatch")

        metrics_logger.info(
            "Successfully sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=METRICS_NAMESPACE,
            execution_success=execution_success,
        )

    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
        # Don't raise - metrics failure shouldn't break the main flow
