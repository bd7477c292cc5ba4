"""
Top-level construct assembling a Bedrock agent from builder outputs.

Assembly runs as a fixed sequence of stages:

    INIT -> BUILDERS_RESOLVED -> STORAGE_PROVISIONED (optional)
         -> ASSOCIATIONS_RESOLVED -> PERMISSIONS_GRANTED -> FINALIZED

Artifact storage is created only when an association needs it. Any
configuration error raised while associating stops the assembly before
the agent resource exists.
"""

import tempfile
from enum import Enum
from pathlib import Path

import structlog
from aws_cdk import RemovalPolicy
from aws_cdk import aws_bedrock as bedrock
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_s3 as s3
from aws_cdk import aws_s3_deployment as s3_deployment
from constructs import Construct

from agent_blueprints.builders.agent import AgentDefinition
from agent_blueprints.cdk.action_group import AgentActionGroup
from agent_blueprints.cdk.guardrail import BedrockGuardrail
from agent_blueprints.cdk.knowledge_base import AgentKnowledgeBase
from agent_blueprints.config import DeploymentContext
from agent_blueprints.errors import ConfigurationError

logger = structlog.get_logger(__name__)

MAX_KNOWLEDGE_BASES = 2
BEDROCK_PRINCIPAL = "bedrock.amazonaws.com"


class AssemblyStage(str, Enum):
    INIT = "init"
    BUILDERS_RESOLVED = "builders_resolved"
    STORAGE_PROVISIONED = "storage_provisioned"
    ASSOCIATIONS_RESOLVED = "associations_resolved"
    PERMISSIONS_GRANTED = "permissions_granted"
    FINALIZED = "finalized"


def schema_object_key(action_group_name: str) -> str:
    return f"{action_group_name}/OpenAPISchema_{action_group_name}.json"


class BedrockAgentBlueprint(Construct):
    """
    A Bedrock agent with its action groups, knowledge bases and guardrail.

    Example:
        definition = AgentDefinitionBuilder("hr-agent", "...").build()
        BedrockAgentBlueprint(
            stack, "HRAgent",
            agent_definition=definition,
            context=DeploymentContext(account=stack.account, region=stack.region),
            action_groups=[vacations],
        )
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        agent_definition: AgentDefinition,
        context: DeploymentContext,
        action_groups: list[AgentActionGroup] | None = None,
        knowledge_bases: list[AgentKnowledgeBase] | None = None,
        guardrail: BedrockGuardrail | None = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.stages: list[AssemblyStage] = [AssemblyStage.INIT]
        self.log = logger.bind(agent_name=agent_definition.agent_name)

        self.definition = agent_definition
        self.context = context
        self.action_groups = list(action_groups or [])
        self.knowledge_bases = [kb for kb in knowledge_bases or [] if kb.enabled]
        self.guardrail = guardrail

        self.asset_bucket: s3.Bucket | None = None
        self.agent_role: iam.Role | None = None
        self.agent: bedrock.CfnAgent | None = None

        self._statements: list[iam.PolicyStatement] = []
        self._action_group_properties: list[bedrock.CfnAgent.AgentActionGroupProperty] = []
        self._knowledge_base_properties: list[bedrock.CfnAgent.AgentKnowledgeBaseProperty] = []
        self._guardrail_property: bedrock.CfnAgent.GuardrailConfigurationProperty | None = None

        self._resolve_builders()
        self._advance(AssemblyStage.BUILDERS_RESOLVED)

        if self.requires_artifact_storage:
            self.asset_bucket = self._create_asset_bucket()
            self._advance(AssemblyStage.STORAGE_PROVISIONED)

        self._associate_action_groups()
        self._associate_knowledge_bases()
        self._associate_guardrail()
        self._advance(AssemblyStage.ASSOCIATIONS_RESOLVED)

        self._grant_permissions()
        self._advance(AssemblyStage.PERMISSIONS_GRANTED)

        self.agent = self._create_agent()
        self._allow_agent_invocations()
        self._advance(AssemblyStage.FINALIZED)

    @property
    def requires_artifact_storage(self) -> bool:
        """True when a schema file or a knowledge base needs the asset bucket."""
        return bool(self.knowledge_bases) or any(
            group.requires_artifact_storage for group in self.action_groups
        )

    def _advance(self, stage: AssemblyStage) -> None:
        self.stages.append(stage)
        self.log.debug("Assembly stage reached", stage=stage.value)

    def _resolve_builders(self) -> None:
        if not self.definition.agent_name or not self.definition.instruction:
            raise ConfigurationError("Agent definition must be built before assembly")
        if len(self.knowledge_bases) > MAX_KNOWLEDGE_BASES:
            raise ConfigurationError(
                f"At most {MAX_KNOWLEDGE_BASES} knowledge bases can be associated with an agent"
            )
        names = [group.action_group_name for group in self.action_groups]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate action group names: {', '.join(duplicates)}")
        for kb in self.knowledge_bases:
            if not kb.asset_files:
                raise ConfigurationError(f"Knowledge base {kb.kb_name} requires asset files")

    def _create_asset_bucket(self) -> s3.Bucket:
        return s3.Bucket(
            self,
            "AssetBucket",
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            enforce_ssl=True,
            versioned=True,
            server_access_logs_prefix="logs/",
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
        )

    def _deploy(self, construct_id: str, prefix: str, sources: list[s3_deployment.ISource]):
        return s3_deployment.BucketDeployment(
            self,
            construct_id,
            sources=sources,
            destination_bucket=self.asset_bucket,
            destination_key_prefix=prefix,
            retain_on_delete=False,
        )

    def _associate_action_groups(self) -> None:
        for group in self.action_groups:
            api_schema = None
            if group.requires_artifact_storage:
                name = group.action_group_name
                self._deploy(
                    f"SchemaDeployment-{name}",
                    name,
                    [s3_deployment.Source.data(f"OpenAPISchema_{name}.json", group.schema.schema_file_text())],
                )
                api_schema = bedrock.CfnAgent.APISchemaProperty(
                    s3=bedrock.CfnAgent.S3IdentifierProperty(
                        s3_bucket_name=self.asset_bucket.bucket_name,
                        s3_object_key=schema_object_key(name),
                    )
                )
                self._statements.append(
                    iam.PolicyStatement(
                        sid=f"AllowAccessToActionGroupAPISchemas{len(self._statements)}",
                        effect=iam.Effect.ALLOW,
                        actions=["s3:GetObject"],
                        resources=[self.asset_bucket.arn_for_objects(schema_object_key(name))],
                        conditions={"StringEquals": {"aws:ResourceAccount": self.context.account}},
                    )
                )
            self._action_group_properties.append(group.to_cfn_property(api_schema))

        for parent in self.definition.parent_action_groups:
            self._action_group_properties.append(
                bedrock.CfnAgent.AgentActionGroupProperty(
                    action_group_name=parent.action_group_name,
                    parent_action_group_signature=parent.parent_action_group_signature,
                    action_group_state=parent.action_group_state,
                )
            )

    def _associate_knowledge_bases(self) -> None:
        for kb in self.knowledge_bases:
            staging_dir = Path(tempfile.mkdtemp(prefix="kb-assets-"))
            for file_name, content in kb.asset_files.items():
                (staging_dir / Path(file_name).name).write_bytes(content)

            deployment = self._deploy(
                f"KnowledgeBaseDeployment-{kb.kb_name}",
                kb.kb_name,
                [s3_deployment.Source.asset(str(staging_dir))],
            )
            kb.create_and_sync_data_source(self.asset_bucket, kb.kb_name)
            kb.sync.node.add_dependency(deployment)
            kb.grant_document_read(self.asset_bucket, kb.kb_name)

            self._statements.append(
                iam.PolicyStatement(
                    sid=f"QueryAssociatedKnowledgeBases{len(self._statements)}",
                    effect=iam.Effect.ALLOW,
                    actions=["bedrock:Retrieve", "bedrock:RetrieveAndGenerate"],
                    resources=[kb.knowledge_base_arn],
                )
            )
            self._knowledge_base_properties.append(
                bedrock.CfnAgent.AgentKnowledgeBaseProperty(
                    knowledge_base_id=kb.knowledge_base_id,
                    description=kb.agent_instruction,
                    knowledge_base_state="ENABLED",
                )
            )

    def _associate_guardrail(self) -> None:
        if self.guardrail is None:
            return
        self._statements.append(
            iam.PolicyStatement(
                sid="AllowToApplyGuardrail",
                effect=iam.Effect.ALLOW,
                actions=["bedrock:ApplyGuardrail"],
                resources=[self.guardrail.guardrail_arn],
            )
        )
        if self.guardrail.kms_key_arn:
            self._statements.append(
                iam.PolicyStatement(
                    sid="AllowKMSEncryptionKeyDecryption",
                    effect=iam.Effect.ALLOW,
                    actions=["kms:Decrypt"],
                    resources=[self.guardrail.kms_key_arn],
                )
            )
        self._guardrail_property = bedrock.CfnAgent.GuardrailConfigurationProperty(
            guardrail_identifier=self.guardrail.guardrail_id,
            guardrail_version=self.guardrail.guardrail_version,
        )

    def _grant_permissions(self) -> None:
        if self.definition.agent_resource_role_arn:
            if self._statements:
                self.log.warning(
                    "Agent role supplied externally; grants must be added by its owner",
                    statements=len(self._statements),
                )
            return

        self.agent_role = iam.Role(
            self,
            "AgentServiceRole",
            assumed_by=iam.ServicePrincipal(
                BEDROCK_PRINCIPAL,
                conditions={"StringEquals": {"aws:SourceAccount": self.context.account}},
            ),
            description=f"Service role for agent {self.definition.agent_name}",
        )
        self.agent_role.add_to_policy(
            iam.PolicyStatement(
                sid="AllowModelInvocationForOrchestration",
                effect=iam.Effect.ALLOW,
                actions=["bedrock:InvokeModel"],
                resources=[self.context.foundation_model_arn(self.definition.foundation_model)],
            )
        )
        for statement in self._statements:
            self.agent_role.add_to_policy(statement)

    def _prompt_override_property(self):
        override = self.definition.prompt_override_configuration
        if override is None:
            return None
        configurations = []
        for prompt in override.prompt_configurations:
            inference = None
            if prompt.inference_configuration is not None:
                config = prompt.inference_configuration
                inference = bedrock.CfnAgent.InferenceConfigurationProperty(
                    maximum_length=config.maximum_length,
                    stop_sequences=list(config.stop_sequences) if config.stop_sequences else None,
                    temperature=config.temperature,
                    top_k=config.top_k,
                    top_p=config.top_p,
                )
            configurations.append(
                bedrock.CfnAgent.PromptConfigurationProperty(
                    prompt_type=prompt.prompt_type.value,
                    prompt_creation_mode=prompt.prompt_creation_mode.value if prompt.prompt_creation_mode else None,
                    parser_mode=prompt.parser_mode.value if prompt.parser_mode else None,
                    prompt_state=prompt.prompt_state.value if prompt.prompt_state else None,
                    base_prompt_template=prompt.base_prompt_template,
                    inference_configuration=inference,
                )
            )
        return bedrock.CfnAgent.PromptOverrideConfigurationProperty(
            prompt_configurations=configurations,
            override_lambda=override.override_lambda,
        )

    def _create_agent(self) -> bedrock.CfnAgent:
        definition = self.definition
        role_arn = definition.agent_resource_role_arn or self.agent_role.role_arn

        properties = dict(
            agent_name=definition.agent_name,
            instruction=definition.instruction,
            foundation_model=definition.foundation_model,
            idle_session_ttl_in_seconds=definition.idle_session_ttl_in_seconds,
            description=definition.description,
            agent_resource_role_arn=role_arn,
            customer_encryption_key_arn=definition.customer_encryption_key_arn,
            action_groups=self._action_group_properties or None,
            knowledge_bases=self._knowledge_base_properties or None,
            guardrail_configuration=self._guardrail_property,
            prompt_override_configuration=self._prompt_override_property(),
            tags=definition.tags or None,
            test_alias_tags=definition.test_alias_tags or None,
        )
        properties.update(definition.additional_properties)

        agent = bedrock.CfnAgent(self, "Agent", **properties)
        if self.agent_role is not None:
            agent.node.add_dependency(self.agent_role)

        self.log.info(
            "Agent assembled",
            action_groups=len(self._action_group_properties),
            knowledge_bases=len(self._knowledge_base_properties),
            guardrail=self.guardrail is not None,
        )
        return agent

    def _allow_agent_invocations(self) -> None:
        for group in self.action_groups:
            if group.lambda_function is None:
                continue
            group.lambda_function.add_permission(
                f"BedrockAgentInvoke-{group.action_group_name}",
                principal=iam.ServicePrincipal(BEDROCK_PRINCIPAL),
                action="lambda:InvokeFunction",
                source_arn=self.agent.attr_agent_arn,
            )

        override_lambda = self.definition.override_lambda
        if override_lambda:
            lambda_.CfnPermission(
                self,
                "PromptParserInvokePermission",
                action="lambda:InvokeFunction",
                function_name=override_lambda,
                principal=BEDROCK_PRINCIPAL,
                source_arn=self.agent.attr_agent_arn,
            )
