"""
Action group construct: resolves the executor (creating a Lambda function
when asked to) and renders the CfnAgent action group property.
"""

import shutil
import tempfile
from pathlib import Path

import structlog
from aws_cdk import Duration
from aws_cdk import aws_bedrock as bedrock
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from constructs import Construct

from agent_blueprints.builders.action_group import (
    ActionGroupExecutor,
    ActionGroupState,
    ExecutorKind,
    LambdaDefinition,
    SchemaDefinition,
)

logger = structlog.get_logger(__name__)


def _module_file_name(definition: LambdaDefinition) -> str:
    """File the handler string points at, e.g. ``index.handler`` -> ``index.py``."""
    module = definition.handler.rsplit(".", 1)[0]
    if definition.runtime.family == lambda_.RuntimeFamily.NODEJS:
        return f"{module}.js"
    return f"{module}.py"


def _packaged_code(definition: LambdaDefinition) -> lambda_.Code:
    source = definition.code
    if isinstance(source, Path) and source.is_dir():
        return lambda_.Code.from_asset(str(source))

    staging_dir = Path(tempfile.mkdtemp(prefix="action-group-"))
    if isinstance(source, Path):
        shutil.copy(source, staging_dir / source.name)
    else:
        target = staging_dir / _module_file_name(definition)
        if isinstance(source, bytes):
            target.write_bytes(source)
        else:
            target.write_text(source, encoding="utf-8")
    return lambda_.Code.from_asset(str(staging_dir))


def resolve_code(definition: LambdaDefinition) -> lambda_.Code:
    """Turn a LambdaDefinition's source into deployable code."""
    if isinstance(definition.code, lambda_.Code):
        return definition.code
    if definition.is_inline:
        source = definition.code
        if isinstance(source, bytes):
            source = source.decode("utf-8")
        return lambda_.Code.from_inline(source)
    return _packaged_code(definition)


class AgentActionGroup(Construct):
    """
    One action group of a Bedrock agent.

    After construction ``lambda_function`` is set for delegating and
    code-backed executors (and None for return of control), and
    ``executor_property`` carries exactly one executor variant.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        action_group_name: str,
        executor: ActionGroupExecutor,
        schema: SchemaDefinition,
        description: str | None = None,
        state: ActionGroupState = ActionGroupState.ENABLED,
    ) -> None:
        super().__init__(scope, construct_id)

        self.action_group_name = action_group_name
        self.executor = executor
        self.schema = schema
        self.description = description
        self.state = state
        self.lambda_function: lambda_.IFunction | None = None

        if executor.kind == ExecutorKind.DELEGATE:
            self.lambda_function = executor.lambda_function
        elif executor.kind == ExecutorKind.CREATE_FROM_CODE:
            self.lambda_function = self._create_function(executor.lambda_definition)

        if self.lambda_function is not None:
            self.executor_property = bedrock.CfnAgent.ActionGroupExecutorProperty(
                lambda_=self.lambda_function.function_arn,
            )
        else:
            self.executor_property = bedrock.CfnAgent.ActionGroupExecutorProperty(
                custom_control=executor.custom_control,
            )

        logger.debug(
            "Action group defined",
            action_group_name=action_group_name,
            executor=executor.kind.value,
        )

    @property
    def requires_artifact_storage(self) -> bool:
        return self.schema.requires_artifact_storage

    def _create_function(self, definition: LambdaDefinition) -> lambda_.Function:
        role = iam.Role(
            self,
            "ExecutionRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            description=f"Execution role for action group {self.action_group_name}",
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                ),
                *definition.managed_policies,
            ],
            inline_policies=definition.inline_policies or None,
        )

        return lambda_.Function(
            self,
            "Function",
            runtime=definition.runtime,
            handler=definition.handler,
            code=resolve_code(definition),
            role=role,
            timeout=Duration.minutes(definition.effective_timeout_minutes),
            memory_size=definition.memory_size,
            environment=definition.environment or None,
            description=f"Executor for action group {self.action_group_name}",
        )

    def to_cfn_property(
        self,
        api_schema: bedrock.CfnAgent.APISchemaProperty | None = None,
    ) -> bedrock.CfnAgent.AgentActionGroupProperty:
        """
        Render the CfnAgent action group property.

        ``api_schema`` is supplied by the blueprint for schemas it uploaded
        to S3; inline schemas and function schemas are rendered here.
        """
        function_schema = None
        if self.schema.inline_api_schema is not None:
            api_schema = bedrock.CfnAgent.APISchemaProperty(payload=self.schema.inline_api_schema)
        elif self.schema.function_schema is not None:
            function_schema = bedrock.CfnAgent.FunctionSchemaProperty(
                functions=[
                    bedrock.CfnAgent.FunctionProperty(
                        name=function.name,
                        description=function.description,
                        parameters={
                            name: bedrock.CfnAgent.ParameterDetailProperty(
                                type=detail.type,
                                description=detail.description,
                                required=detail.required,
                            )
                            for name, detail in function.parameters.items()
                        } or None,
                    )
                    for function in self.schema.function_schema
                ]
            )

        return bedrock.CfnAgent.AgentActionGroupProperty(
            action_group_name=self.action_group_name,
            description=self.description,
            action_group_state=self.state.value,
            action_group_executor=self.executor_property,
            api_schema=api_schema,
            function_schema=function_schema,
        )
