"""Shared fixtures for integration tests against a real DynamoDB endpoint.

All integration tests are skipped unless the required environment variables
are set. This allows the test suite to run in CI without credentials while
supporting local testing against DynamoDB Local or a real table.

Required env vars:
    DYNAMODB_TABLE          — table with partition key `session_id` (S)

Optional env vars:
    DYNAMODB_ENDPOINT       — e.g., http://localhost:8000 for DynamoDB Local
    DYNAMODB_REGION         — defaults to us-west-2
"""

from __future__ import annotations

import os

import pytest

from signed_sessions.session import DynamoDBSessionStore

pytestmark = pytest.mark.integration


@pytest.fixture(scope="session")
def dynamodb_env():
    """Return DynamoDB env vars or skip."""
    table = os.environ.get("DYNAMODB_TABLE")
    if not table:
        pytest.skip("Integration tests require DYNAMODB_TABLE")
    return {
        "table": table,
        "endpoint": os.environ.get("DYNAMODB_ENDPOINT", ""),
        "region": os.environ.get("DYNAMODB_REGION", "us-west-2"),
    }


@pytest.fixture
def dynamodb_store(dynamodb_env):
    return DynamoDBSessionStore(
        table_name=dynamodb_env["table"],
        endpoint_url=dynamodb_env["endpoint"],
        region_name=dynamodb_env["region"],
    )
