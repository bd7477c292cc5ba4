"""
Custom resource backed by one of the package's provisioner Lambdas.
"""

from pathlib import Path
from typing import Any

from aws_cdk import BundlingOptions, CustomResource, Duration, RemovalPolicy
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_logs as logs
from aws_cdk import custom_resources as cr
from constructs import Construct

PACKAGE_DIR = Path(__file__).resolve().parent.parent
HANDLER_MODULE = "agent_blueprints.provisioning.handlers"
PROVISIONER_RUNTIME = lambda_.Runtime.PYTHON_3_12


def provisioner_code() -> lambda_.Code:
    """
    Asset holding the agent_blueprints package and its runtime dependencies.

    Only the pure-Python parts of the package are shipped; the CDK
    constructs and builders stay out of the Lambda bundle.
    """
    return lambda_.Code.from_asset(
        str(PACKAGE_DIR),
        exclude=["cdk", "builders", "**/__pycache__", "*.pyc"],
        bundling=BundlingOptions(
            image=PROVISIONER_RUNTIME.bundling_image,
            command=[
                "bash",
                "-c",
                "pip install -r provisioning/requirements.txt -t /asset-output"
                " && mkdir -p /asset-output/agent_blueprints"
                " && cp -au . /asset-output/agent_blueprints",
            ],
        ),
    )


def provisioner_role(
    scope: Construct,
    construct_id: str,
    statements: list[iam.PolicyStatement],
) -> iam.Role:
    """Execution role for a provisioner Lambda."""
    return iam.Role(
        scope,
        construct_id,
        assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
        managed_policies=[
            iam.ManagedPolicy.from_aws_managed_policy_name(
                "service-role/AWSLambdaBasicExecutionRole"
            ),
        ],
        inline_policies={
            "ProvisionerAccess": iam.PolicyDocument(statements=statements),
        },
    )


class ProvisionerResource(Construct):
    """
    A provisioner Lambda, its provider framework and the custom resource.

    The Lambda runs for up to 15 minutes so the longest retry budget
    (20 attempts, 30 seconds apart) fits in one invocation.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        handler: str,
        role: iam.IRole,
        resource_type: str,
        properties: dict[str, Any],
        timeout: Duration = Duration.minutes(15),
        memory_size: int = 256,
    ) -> None:
        super().__init__(scope, construct_id)

        log_group = logs.LogGroup(
            self,
            "LogGroup",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.function = lambda_.Function(
            self,
            "Function",
            runtime=PROVISIONER_RUNTIME,
            handler=f"{HANDLER_MODULE}.{handler}",
            code=provisioner_code(),
            role=role,
            timeout=timeout,
            memory_size=memory_size,
            log_group=log_group,
        )

        self.provider = cr.Provider(self, "Provider", on_event_handler=self.function)

        self.resource = CustomResource(
            self,
            "Resource",
            service_token=self.provider.service_token,
            resource_type=resource_type,
            properties=properties,
        )
