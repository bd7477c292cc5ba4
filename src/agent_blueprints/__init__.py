"""
Agent Blueprints - CDK building blocks for Amazon Bedrock Agents.

Provides validating builders for agent, guardrail and action group
definitions, CDK constructs that assemble them into a deployable agent,
and the custom-resource provisioners that bridge eventually consistent
services (OpenSearch Serverless indexes, knowledge base ingestion).

Importing this package does not import aws_cdk, so the provisioner
Lambda bundle can ship it without the CDK runtime.
"""

__version__ = "0.1.0"
__author__ = "Developer"

from agent_blueprints.config import DeploymentContext, Settings, get_settings
from agent_blueprints.errors import (
    BlueprintError,
    ConfigurationError,
    ProvisioningError,
    ProvisioningFailure,
    RetryExhausted,
)

__all__ = [
    "BlueprintError",
    "ConfigurationError",
    "DeploymentContext",
    "ProvisioningError",
    "ProvisioningFailure",
    "RetryExhausted",
    "Settings",
    "get_settings",
    "__version__",
]
