"""
Pytest configuration and fixtures for agent blueprint tests.
"""

import os
import pytest
from unittest.mock import MagicMock

# Set test environment variables
os.environ["AWS_REGION"] = "us-west-2"
os.environ["CDK_DEFAULT_ACCOUNT"] = "123456789012"
os.environ["CDK_DEFAULT_REGION"] = "us-west-2"

ACCOUNT = "123456789012"
REGION = "us-west-2"
COLLECTION_ENDPOINT = "https://abc123.us-west-2.aoss.amazonaws.com"


@pytest.fixture
def settings():
    """Create test settings."""
    from agent_blueprints.config import Settings
    return Settings()


@pytest.fixture
def context():
    """Deployment context for the test account."""
    from agent_blueprints.config import DeploymentContext
    return DeploymentContext(account=ACCOUNT, region=REGION)


@pytest.fixture
def app():
    """CDK app that skips Docker bundling of Lambda assets."""
    from aws_cdk import App
    return App(context={"aws:cdk:bundling-stacks": []})


@pytest.fixture
def stack(app):
    """Stack pinned to the test account and region."""
    from aws_cdk import Environment, Stack
    return Stack(app, "TestStack", env=Environment(account=ACCOUNT, region=REGION))


@pytest.fixture
def fast_policy():
    """Three attempts, no delay."""
    from agent_blueprints.provisioning.retry import RetryPolicy
    return RetryPolicy(max_attempts=3, delay_seconds=0)


@pytest.fixture
def mock_opensearch_client():
    """Create a mock OpenSearch client."""
    client = MagicMock()
    client.indices.create = MagicMock(return_value={"acknowledged": True})
    client.indices.delete = MagicMock(return_value={"acknowledged": True})
    client.indices.exists = MagicMock(return_value=True)
    return client


@pytest.fixture
def mock_bedrock_agent_client():
    """Create a mock Bedrock Agent client."""
    client = MagicMock()
    client.start_ingestion_job = MagicMock(return_value={
        "ingestionJob": {"ingestionJobId": "JOB123", "status": "STARTING"}
    })
    client.get_data_source = MagicMock(return_value={
        "dataSource": {"dataSourceId": "DS123", "status": "AVAILABLE"}
    })
    client.delete_data_source = MagicMock(return_value={"status": "DELETING"})
    client.delete_knowledge_base = MagicMock(return_value={"status": "DELETING"})
    return client


@pytest.fixture
def index_event():
    """Build an index custom-resource event."""
    def _event(request_type: str = "Create", **properties):
        event = {
            "RequestType": request_type,
            "LogicalResourceId": "Index",
            "ResourceProperties": {
                "indexName": "kb-index",
                "collectionEndpoint": COLLECTION_ENDPOINT,
                **properties,
            },
        }
        if request_type != "Create":
            event["PhysicalResourceId"] = "osindex_kb-index"
        return event
    return _event
