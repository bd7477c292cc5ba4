"""
Tests for settings and the deployment context.
"""

import pytest
from pydantic import ValidationError

from agent_blueprints.config import (
    DeploymentContext,
    DeploymentSettings,
    ProvisionerSettings,
    Settings,
)
from agent_blueprints.errors import ConfigurationError


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, settings):
        """Test default provisioner budgets."""
        assert settings.provisioner.index_max_attempts == 20
        assert settings.provisioner.index_retry_delay_seconds == 30
        assert settings.provisioner.sync_max_attempts == 15
        assert settings.provisioner.sync_retry_delay_seconds == 10

    def test_region_from_environment(self, settings):
        """Test the region is read from AWS_REGION."""
        assert settings.aws.region == "us-west-2"

    def test_env_override(self, monkeypatch):
        """Test provisioner settings can be overridden from the environment."""
        monkeypatch.setenv("PROVISIONER_INDEX_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("PROVISIONER_SYNC_RETRY_DELAY_SECONDS", "2.5")

        settings = Settings()

        assert settings.provisioner.index_max_attempts == 5
        assert settings.provisioner.sync_retry_delay_seconds == 2.5

    def test_invalid_attempts(self):
        """Test attempt budgets must be positive."""
        with pytest.raises(ValidationError):
            ProvisionerSettings(index_max_attempts=0)

    def test_invalid_delay(self):
        """Test delays must not be negative."""
        with pytest.raises(ValidationError):
            ProvisionerSettings(sync_retry_delay_seconds=-1)


class TestDeploymentContext:
    """Tests for DeploymentContext."""

    def test_from_settings(self, settings):
        """Test the context is read from the CDK environment."""
        context = DeploymentContext.from_settings(settings)

        assert context.account == "123456789012"
        assert context.region == "us-west-2"

    def test_missing_account(self, monkeypatch):
        """Test a missing account is a configuration error."""
        monkeypatch.delenv("CDK_DEFAULT_ACCOUNT", raising=False)
        settings = Settings(deployment=DeploymentSettings())

        with pytest.raises(ConfigurationError, match="CDK_DEFAULT_ACCOUNT"):
            DeploymentContext.from_settings(settings)

    def test_blank_values(self):
        """Test blank account or region is rejected."""
        with pytest.raises(ValidationError):
            DeploymentContext(account=" ", region="us-west-2")

    def test_arns(self, context):
        """Test ARNs are built from the context."""
        assert context.foundation_model_arn("anthropic.claude-v2") == (
            "arn:aws:bedrock:us-west-2::foundation-model/anthropic.claude-v2"
        )
        assert context.knowledge_base_arn("KB1") == "arn:aws:bedrock:us-west-2:123456789012:knowledge-base/KB1"
        assert context.guardrail_arn("G1") == "arn:aws:bedrock:us-west-2:123456789012:guardrail/G1"
        assert context.collection_arn() == "arn:aws:aoss:us-west-2:123456789012:collection/*"

    def test_partition(self):
        """Test ARNs follow the partition."""
        context = DeploymentContext(account="123456789012", region="us-gov-west-1", partition="aws-us-gov")

        assert context.collection_arn("abc").startswith("arn:aws-us-gov:aoss:")
