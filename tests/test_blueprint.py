"""
Tests for the agent blueprint assembler.
"""

import pytest
from aws_cdk.assertions import Match, Template

from agent_blueprints.builders.action_group import (
    ActionGroupExecutor,
    CodeKind,
    LambdaDefinition,
    SchemaDefinition,
)
from agent_blueprints.builders.agent import AgentDefinitionBuilder
from agent_blueprints.builders.guardrail import FilterType, GuardrailBuilder
from agent_blueprints.cdk.action_group import AgentActionGroup
from agent_blueprints.cdk.blueprint import AssemblyStage, BedrockAgentBlueprint, schema_object_key
from agent_blueprints.cdk.guardrail import BedrockGuardrail
from agent_blueprints.cdk.knowledge_base import AgentKnowledgeBase
from agent_blueprints.errors import ConfigurationError

INLINE_SOURCE = "def handler(event, context):\n    return {}\n"
OPENAPI_SCHEMA = '{"openapi": "3.0.0", "info": {"title": "Vacations", "version": "1.0.0"}, "paths": {}}'
EXTERNAL_ROLE_ARN = "arn:aws:iam::123456789012:role/existing-agent-role"


def agent_definition(**kwargs):
    builder = AgentDefinitionBuilder("hr-agent", "You are an HR assistant that helps employees.")
    if kwargs.get("role_arn"):
        builder.with_agent_resource_role_arn(kwargs["role_arn"])
    if kwargs.get("user_input"):
        builder.with_user_input()
    return builder.build()


def inline_action_group(stack, name="vacations", schema=None):
    return AgentActionGroup(
        stack,
        f"{name}-group",
        action_group_name=name,
        executor=ActionGroupExecutor.from_code(
            LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.INLINE)
        ),
        schema=schema or SchemaDefinition.functions([{"name": "get_balance"}]),
    )


def menu_knowledge_base(stack, context, kb_name="menu", asset_files=None):
    return AgentKnowledgeBase(
        stack,
        f"{kb_name}-kb",
        kb_name=kb_name,
        agent_instruction="Answer questions about the menu.",
        context=context,
        asset_files={"menu.txt": b"Soup of the day"} if asset_files is None else asset_files,
    )


def find_one(template, resource_type):
    resources = template.find_resources(resource_type)
    assert len(resources) == 1
    return next(iter(resources.values()))


class TestAssembly:
    """Tests for the assembly sequence."""

    def test_inline_only_needs_no_storage(self, stack, context):
        """Test an agent without schema files or knowledge bases has no asset bucket."""
        blueprint = BedrockAgentBlueprint(
            stack,
            "Agent",
            agent_definition=agent_definition(),
            context=context,
            action_groups=[inline_action_group(stack)],
        )

        template = Template.from_stack(stack)
        template.resource_count_is("AWS::S3::Bucket", 0)
        template.resource_count_is("Custom::CDKBucketDeployment", 0)
        template.resource_count_is("AWS::Bedrock::Agent", 1)
        assert blueprint.asset_bucket is None
        assert blueprint.stages == [
            AssemblyStage.INIT,
            AssemblyStage.BUILDERS_RESOLVED,
            AssemblyStage.ASSOCIATIONS_RESOLVED,
            AssemblyStage.PERMISSIONS_GRANTED,
            AssemblyStage.FINALIZED,
        ]

    def test_schema_file_is_uploaded(self, stack, context):
        """Test an OpenAPI schema file is deployed and referenced by key."""
        group = inline_action_group(stack, schema=SchemaDefinition.from_file(OPENAPI_SCHEMA))
        blueprint = BedrockAgentBlueprint(
            stack,
            "Agent",
            agent_definition=agent_definition(),
            context=context,
            action_groups=[group],
        )

        template = Template.from_stack(stack)
        template.resource_count_is("AWS::S3::Bucket", 1)
        template.resource_count_is("Custom::CDKBucketDeployment", 1)
        template.has_resource_properties("Custom::CDKBucketDeployment", {
            "DestinationBucketKeyPrefix": "vacations",
        })
        template.has_resource_properties("AWS::Bedrock::Agent", {
            "ActionGroups": Match.array_with([
                Match.object_like({
                    "ActionGroupName": "vacations",
                    "ApiSchema": {
                        "S3": {
                            "S3BucketName": Match.any_value(),
                            "S3ObjectKey": "vacations/OpenAPISchema_vacations.json",
                        },
                    },
                }),
            ]),
        })
        assert AssemblyStage.STORAGE_PROVISIONED in blueprint.stages

    def test_schema_object_key(self):
        """Test the schema object key layout."""
        assert schema_object_key("orders") == "orders/OpenAPISchema_orders.json"

    def test_too_many_knowledge_bases(self, stack, context):
        """Test at most two knowledge bases can be associated."""
        kbs = [menu_knowledge_base(stack, context, f"kb{i}") for i in range(3)]

        with pytest.raises(ConfigurationError, match="At most 2 knowledge bases"):
            BedrockAgentBlueprint(
                stack, "Agent", agent_definition=agent_definition(), context=context, knowledge_bases=kbs
            )

        Template.from_stack(stack).resource_count_is("AWS::Bedrock::Agent", 0)

    def test_knowledge_base_needs_assets(self, stack, context):
        """Test a knowledge base without documents stops the assembly."""
        kb = menu_knowledge_base(stack, context, asset_files={})

        with pytest.raises(ConfigurationError, match="requires asset files"):
            BedrockAgentBlueprint(
                stack, "Agent", agent_definition=agent_definition(), context=context, knowledge_bases=[kb]
            )

        Template.from_stack(stack).resource_count_is("AWS::Bedrock::Agent", 0)

    def test_duplicate_action_group_names(self, stack, context):
        """Test action group names are unique."""
        groups = [inline_action_group(stack, "orders"), AgentActionGroup(
            stack,
            "orders-roc",
            action_group_name="orders",
            executor=ActionGroupExecutor.return_control(),
            schema=SchemaDefinition.functions([{"name": "place_order"}]),
        )]

        with pytest.raises(ConfigurationError, match="Duplicate action group names: orders"):
            BedrockAgentBlueprint(
                stack, "Agent", agent_definition=agent_definition(), context=context, action_groups=groups
            )


class TestKnowledgeBaseAssociation:
    """Tests for associating a knowledge base."""

    def test_knowledge_base_is_deployed_and_synced(self, stack, context):
        """Test documents are uploaded and the knowledge base is attached."""
        kb = menu_knowledge_base(stack, context)
        BedrockAgentBlueprint(
            stack, "Agent", agent_definition=agent_definition(), context=context, knowledge_bases=[kb]
        )

        template = Template.from_stack(stack)
        template.resource_count_is("AWS::S3::Bucket", 1)
        template.has_resource_properties("Custom::CDKBucketDeployment", {
            "DestinationBucketKeyPrefix": "menu",
        })
        template.resource_count_is("Custom::DataSourceSync", 1)
        template.has_resource_properties("AWS::Bedrock::Agent", {
            "KnowledgeBases": [
                {
                    "KnowledgeBaseId": Match.any_value(),
                    "Description": "Answer questions about the menu.",
                    "KnowledgeBaseState": "ENABLED",
                },
            ],
        })

    def test_sync_waits_for_documents(self, stack, context):
        """Test ingestion starts after the documents are deployed."""
        kb = menu_knowledge_base(stack, context)
        BedrockAgentBlueprint(
            stack, "Agent", agent_definition=agent_definition(), context=context, knowledge_bases=[kb]
        )

        template = Template.from_stack(stack)
        sync = find_one(template, "Custom::DataSourceSync")
        deployment_ids = template.find_resources("Custom::CDKBucketDeployment").keys()
        assert set(deployment_ids) <= set(sync["DependsOn"])


class TestPermissions:
    """Tests for the agent role and invoke permissions."""

    def test_model_invocation_policy(self, stack, context):
        """Test the agent role may invoke its foundation model."""
        BedrockAgentBlueprint(stack, "Agent", agent_definition=agent_definition(), context=context)

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::IAM::Role", {
            "AssumeRolePolicyDocument": {
                "Statement": [
                    Match.object_like({
                        "Principal": {"Service": "bedrock.amazonaws.com"},
                        "Condition": {"StringEquals": {"aws:SourceAccount": "123456789012"}},
                    }),
                ],
            },
        })
        template.has_resource_properties("AWS::IAM::Policy", {
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({
                        "Sid": "AllowModelInvocationForOrchestration",
                        "Action": "bedrock:InvokeModel",
                        "Resource": "arn:aws:bedrock:us-west-2::foundation-model/anthropic.claude-v2",
                    }),
                ]),
            },
        })

    def test_external_role(self, stack, context):
        """Test a supplied role is used as is."""
        blueprint = BedrockAgentBlueprint(
            stack,
            "Agent",
            agent_definition=agent_definition(role_arn=EXTERNAL_ROLE_ARN),
            context=context,
        )

        template = Template.from_stack(stack)
        template.resource_count_is("AWS::IAM::Role", 0)
        template.has_resource_properties("AWS::Bedrock::Agent", {"AgentResourceRoleArn": EXTERNAL_ROLE_ARN})
        assert blueprint.agent_role is None

    def test_lambda_invoke_permission(self, stack, context):
        """Test created functions may be invoked by the agent."""
        BedrockAgentBlueprint(
            stack,
            "Agent",
            agent_definition=agent_definition(),
            context=context,
            action_groups=[inline_action_group(stack)],
        )

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Lambda::Permission", {
            "Action": "lambda:InvokeFunction",
            "Principal": "bedrock.amazonaws.com",
            "SourceArn": {"Fn::GetAtt": [Match.string_like_regexp("^Agent"), "AgentArn"]},
        })


class TestAgentProperties:
    """Tests for the rendered agent resource."""

    def test_defaults(self, stack, context):
        """Test a minimal agent renders without prompt overrides."""
        BedrockAgentBlueprint(stack, "Agent", agent_definition=agent_definition(), context=context)

        Template.from_stack(stack).has_resource_properties("AWS::Bedrock::Agent", {
            "AgentName": "hr-agent",
            "FoundationModel": "anthropic.claude-v2",
            "IdleSessionTTLInSeconds": 1200,
            "PromptOverrideConfiguration": Match.absent(),
            "GuardrailConfiguration": Match.absent(),
        })

    def test_user_input_action_group(self, stack, context):
        """Test the built-in user input action group is attached."""
        BedrockAgentBlueprint(stack, "Agent", agent_definition=agent_definition(user_input=True), context=context)

        Template.from_stack(stack).has_resource_properties("AWS::Bedrock::Agent", {
            "ActionGroups": [
                {
                    "ActionGroupName": "UserInputAction",
                    "ParentActionGroupSignature": "AMAZON.UserInput",
                    "ActionGroupState": "ENABLED",
                },
            ],
        })

    def test_guardrail(self, stack, context):
        """Test the guardrail is attached and may be applied by the agent."""
        guardrail = BedrockGuardrail(
            stack,
            "Guardrail",
            definition=GuardrailBuilder("agent-guardrail").with_filter(FilterType.MISCONDUCT).build(),
            generate_kms_key=True,
        )
        BedrockAgentBlueprint(
            stack, "Agent", agent_definition=agent_definition(), context=context, guardrail=guardrail
        )

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Bedrock::Agent", {
            "GuardrailConfiguration": {
                "GuardrailIdentifier": Match.any_value(),
                "GuardrailVersion": Match.any_value(),
            },
        })
        template.has_resource_properties("AWS::IAM::Policy", {
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({"Sid": "AllowToApplyGuardrail", "Action": "bedrock:ApplyGuardrail"}),
                    Match.object_like({"Sid": "AllowKMSEncryptionKeyDecryption", "Action": "kms:Decrypt"}),
                ]),
            },
        })
