"""
Configuration settings for agent blueprints.

Uses pydantic-settings for type-safe configuration management with
environment variable support. Deployment account and region are carried
by an explicit DeploymentContext instead of being read ad hoc from the
environment by each construct.
"""

from functools import lru_cache

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_blueprints.errors import ConfigurationError


class AWSSettings(BaseSettings):
    """AWS-specific configuration settings."""

    model_config = SettingsConfigDict(extra="ignore")

    # Lambda sets AWS_REGION; local shells usually set AWS_DEFAULT_REGION
    region: str = Field(
        default="us-east-1",
        validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION"),
    )


class DeploymentSettings(BaseSettings):
    """Target environment resolved by the CDK CLI."""

    model_config = SettingsConfigDict(env_prefix="CDK_DEFAULT_", extra="ignore")

    account: str | None = Field(default=None, description="Target AWS account id")
    region: str | None = Field(default=None, description="Target AWS region")


class ProvisionerSettings(BaseSettings):
    """Retry budgets and client tuning for the custom-resource provisioners."""

    model_config = SettingsConfigDict(env_prefix="PROVISIONER_", extra="ignore")

    index_max_attempts: int = Field(default=20, description="Attempts for index create/existence checks")
    index_retry_delay_seconds: float = Field(default=30, description="Delay between index attempts")
    sync_max_attempts: int = Field(default=15, description="Attempts for starting an ingestion job")
    sync_retry_delay_seconds: float = Field(default=10, description="Delay between ingestion attempts")
    client_timeout_seconds: int = Field(default=10, description="OpenSearch request timeout")
    client_max_retries: int = Field(default=5, description="OpenSearch transport retries")

    @field_validator("index_max_attempts", "sync_max_attempts", "client_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @field_validator("index_retry_delay_seconds", "sync_retry_delay_seconds", "client_max_retries")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v


class Settings(BaseSettings):
    """Main settings aggregating all configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Nested settings
    aws: AWSSettings = Field(default_factory=AWSSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    provisioner: ProvisionerSettings = Field(default_factory=ProvisionerSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class DeploymentContext(BaseModel):
    """
    Account, region and partition that every generated ARN is built from.

    Passed explicitly to the constructs. Values may be CDK tokens
    (e.g. ``Stack.of(self).account``) as well as literal strings.
    """

    model_config = ConfigDict(frozen=True)

    account: str
    region: str
    partition: str = "aws"

    @field_validator("account", "region", "partition")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DeploymentContext":
        """Build a context from CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION."""
        settings = settings or get_settings()
        account = settings.deployment.account
        region = settings.deployment.region
        if not account or not region:
            raise ConfigurationError(
                "Deployment account and region are required; "
                "set CDK_DEFAULT_ACCOUNT and CDK_DEFAULT_REGION"
            )
        return cls(account=account, region=region)

    def foundation_model_arn(self, model_id: str) -> str:
        return f"arn:{self.partition}:bedrock:{self.region}::foundation-model/{model_id}"

    def knowledge_base_arn(self, knowledge_base_id: str) -> str:
        return f"arn:{self.partition}:bedrock:{self.region}:{self.account}:knowledge-base/{knowledge_base_id}"

    def guardrail_arn(self, guardrail_id: str) -> str:
        return f"arn:{self.partition}:bedrock:{self.region}:{self.account}:guardrail/{guardrail_id}"

    def collection_arn(self, collection_id: str = "*") -> str:
        return f"arn:{self.partition}:aoss:{self.region}:{self.account}:collection/{collection_id}"
