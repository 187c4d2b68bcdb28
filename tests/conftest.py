"""
Pytest configuration and shared fixtures for Handler Kit.

This module provides common test fixtures and configuration used across
unit and integration tests.
"""

import json
import os
from typing import Any, Dict
from unittest.mock import Mock

import pytest

# Powertools reads these when the observability singletons are created, which
# happens while test modules are collected
TEST_ENVIRONMENT = {
    "AWS_DEFAULT_REGION": "us-east-1",
    "APP_VERSION": "test-1.0.0",
    "POWERTOOLS_SERVICE_NAME": "test-handler-kit",
    "POWERTOOLS_METRICS_NAMESPACE": "TestHandlerKit",
    "LOG_LEVEL": "DEBUG",
    "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
}
os.environ.update(TEST_ENVIRONMENT)


@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Set up test environment variables."""
    os.environ.update(TEST_ENVIRONMENT)


@pytest.fixture
def api_gateway_event() -> Dict[str, Any]:
    """Create a sample API Gateway REST (v1) event for testing."""
    return {
        "resource": "/hello",
        "httpMethod": "POST",
        "path": "/hello",
        "headers": {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "test-agent/1.0",
        },
        "multiValueHeaders": None,
        "body": json.dumps({"what": "x"}),
        "requestContext": {
            "requestId": "test-request-id-123",
            "accountId": "123456789012",
            "stage": "test",
            "httpMethod": "POST",
            "path": "/hello",
            "protocol": "HTTP/1.1",
            "requestTime": "2024-01-01T12:00:00.000Z",
            "requestTimeEpoch": 1704110400000,
            "identity": {
                "sourceIp": "127.0.0.1",
                "userAgent": "test-agent/1.0",
                "apiKey": None,
                "apiKeyId": None,
            },
        },
        "pathParameters": None,
        "queryStringParameters": None,
        "multiValueQueryStringParameters": None,
        "stageVariables": None,
        "isBase64Encoded": False,
    }


@pytest.fixture
def http_api_event() -> Dict[str, Any]:
    """Create a sample API Gateway HTTP API (v2) event for testing."""
    return {
        "version": "2.0",
        "routeKey": "POST /hello",
        "rawPath": "/hello",
        "rawQueryString": "",
        "headers": {
            "content-type": "application/json",
            "user-agent": "test-agent/1.0",
        },
        "body": json.dumps({"what": "x"}),
        "requestContext": {
            "accountId": "123456789012",
            "apiId": "api-id",
            "domainName": "id.execute-api.us-east-1.amazonaws.com",
            "http": {
                "method": "POST",
                "path": "/hello",
                "protocol": "HTTP/1.1",
                "sourceIp": "127.0.0.1",
                "userAgent": "test-agent/1.0",
            },
            "requestId": "test-request-id-456",
            "stage": "$default",
        },
        "isBase64Encoded": False,
    }


@pytest.fixture
def sqs_event() -> Dict[str, Any]:
    """Create a sample SQS event for testing."""
    return {
        "Records": [
            {
                "messageId": "059f36b4-87a3-44ab-83d2-661975830a7d",
                "receiptHandle": "AQEBwJnKyrHigUMZj6rYigCgxlaS3SLy0a",
                "body": json.dumps({"what": "x"}),
                "attributes": {
                    "ApproximateReceiveCount": "1",
                    "SentTimestamp": "1545082649183",
                },
                "messageAttributes": {},
                "md5OfBody": "e4e68fb7bd0e697a0ae8f1bb342846b3",
                "eventSource": "aws:sqs",
                "eventSourceARN": "arn:aws:sqs:us-east-1:123456789012:my-queue",
                "awsRegion": "us-east-1",
            }
        ]
    }


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context for testing."""
    context = Mock()
    context.function_name = "test-lambda-function"
    context.function_version = "1"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-lambda-function"
    context.memory_limit_in_mb = 512
    context.get_remaining_time_in_millis = lambda: 30000
    context.aws_request_id = "test-request-id-123"
    context.log_group_name = "/aws/lambda/test-lambda-function"
    context.log_stream_name = "2024/01/01/[$LATEST]test123"
    return context


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Add markers based on test location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def reset_profile_registry():
    """Reset the process-wide profile registry between tests."""
    from handler_kit.middleware import customization

    customization._registry = None
    yield
    customization._registry = None
