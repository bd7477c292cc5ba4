"""
Tests for action group executors, schemas and the action group construct.
"""

from pathlib import Path

import pytest
from aws_cdk import aws_lambda as lambda_
from aws_cdk.assertions import Match, Template

from agent_blueprints.builders.action_group import (
    RETURN_CONTROL,
    ActionGroupExecutor,
    CodeKind,
    ExecutorKind,
    FunctionDefinition,
    LambdaDefinition,
    SchemaDefinition,
)
from agent_blueprints.cdk.action_group import AgentActionGroup
from agent_blueprints.errors import ConfigurationError

INLINE_SOURCE = "def handler(event, context):\n    return {}\n"
FUNCTION_ARN = "arn:aws:lambda:us-west-2:123456789012:function:existing"


def functions_schema():
    return SchemaDefinition.functions([
        {
            "name": "get_balance",
            "description": "Get the vacation balance",
            "parameters": {"employee_id": {"type": "integer", "required": True}},
        }
    ])


class TestActionGroupExecutor:
    """Tests for the exactly-one-executor rule."""

    def test_no_executor(self):
        """Test an executor must populate one field."""
        with pytest.raises(ConfigurationError, match="Exactly one"):
            ActionGroupExecutor()

    def test_two_executors(self):
        """Test an executor cannot populate two fields."""
        definition = LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.INLINE)

        with pytest.raises(ConfigurationError, match="lambda_definition, custom_control"):
            ActionGroupExecutor(lambda_definition=definition, custom_control=RETURN_CONTROL)

    def test_unsupported_custom_control(self):
        """Test only return of control is accepted."""
        with pytest.raises(ConfigurationError, match="Unsupported custom control"):
            ActionGroupExecutor(custom_control="CALL_HOME")

    def test_return_control(self):
        """Test the return-of-control executor."""
        executor = ActionGroupExecutor.return_control()

        assert executor.kind == ExecutorKind.RETURN_CONTROL
        assert executor.describe() == {"custom_control": RETURN_CONTROL}


class TestLambdaDefinition:
    """Tests for LambdaDefinition validation."""

    def test_code_kind_required(self):
        """Test the code kind is declared, not guessed."""
        with pytest.raises(ConfigurationError, match="code_kind"):
            LambdaDefinition(code=INLINE_SOURCE, handler="index.handler")

    def test_handler_required(self):
        """Test a handler is required."""
        with pytest.raises(ConfigurationError, match="handler"):
            LambdaDefinition(code=INLINE_SOURCE, handler="", code_kind=CodeKind.INLINE)

    def test_timeout_range(self):
        """Test the timeout is between 1 and 15 minutes."""
        with pytest.raises(ConfigurationError):
            LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.INLINE, timeout_minutes=20)

    def test_inline_rejects_path(self, tmp_path):
        """Test INLINE code cannot point at a file."""
        source = tmp_path / "index.py"
        source.write_text(INLINE_SOURCE)

        with pytest.raises(ConfigurationError, match="INLINE"):
            LambdaDefinition(code=source, handler="index.handler", code_kind=CodeKind.INLINE)

    def test_missing_path(self):
        """Test a packaged path must exist."""
        with pytest.raises(ConfigurationError, match="does not exist"):
            LambdaDefinition(code=Path("/nonexistent/handler"), handler="index.handler", code_kind=CodeKind.PACKAGED)

    def test_default_timeouts(self):
        """Test inline and packaged code get different default timeouts."""
        inline = LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.INLINE)
        packaged = LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.PACKAGED)

        assert inline.effective_timeout_minutes == 1
        assert packaged.effective_timeout_minutes == 15


class TestSchemaDefinition:
    """Tests for SchemaDefinition."""

    def test_schema_required(self):
        """Test an action group needs an API."""
        with pytest.raises(ConfigurationError, match="OpenAPI schema or functionDefinition schema required"):
            SchemaDefinition()

    def test_single_source(self):
        """Test only one schema source may be set."""
        with pytest.raises(ConfigurationError, match="Only one schema source"):
            SchemaDefinition(inline_api_schema="{}", api_schema_file="{}")

    def test_functions_are_normalised(self):
        """Test dict function definitions become models."""
        schema = functions_schema()

        assert isinstance(schema.function_schema[0], FunctionDefinition)
        assert schema.function_schema[0].parameters["employee_id"].required is True
        assert not schema.requires_artifact_storage

    def test_invalid_function(self):
        """Test a malformed function definition is a configuration error."""
        with pytest.raises(ConfigurationError, match="FunctionDefinition"):
            SchemaDefinition.functions([{"name": ""}])
        with pytest.raises(ConfigurationError, match="name"):
            FunctionDefinition(name="")

    def test_schema_file_needs_storage(self):
        """Test schema files are uploaded to artifact storage."""
        schema = SchemaDefinition.from_file(b'{"openapi": "3.0.0"}')

        assert schema.requires_artifact_storage
        assert schema.schema_file_text() == '{"openapi": "3.0.0"}'


class TestAgentActionGroup:
    """Tests for the AgentActionGroup construct."""

    def test_inline_code(self, stack):
        """Test inline code is embedded with the short default timeout."""
        executor = ActionGroupExecutor.from_code(
            LambdaDefinition(code=INLINE_SOURCE, handler="index.handler", code_kind=CodeKind.INLINE)
        )
        group = AgentActionGroup(stack, "Inline", action_group_name="inline", executor=executor, schema=functions_schema())

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Lambda::Function", {
            "Code": {"ZipFile": INLINE_SOURCE},
            "Handler": "index.handler",
            "Timeout": 60,
        })
        assert group.lambda_function is not None

    def test_packaged_code(self, stack):
        """Test packaged source is staged as an asset with the long default timeout."""
        executor = ActionGroupExecutor.from_code(
            LambdaDefinition(code=INLINE_SOURCE.encode(), handler="index.handler", code_kind=CodeKind.PACKAGED)
        )
        AgentActionGroup(stack, "Packaged", action_group_name="packaged", executor=executor, schema=functions_schema())

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Lambda::Function", {
            "Code": {"S3Bucket": Match.any_value(), "S3Key": Match.string_like_regexp(r"\.zip$")},
            "Timeout": 900,
        })

    def test_return_control(self, stack):
        """Test return of control creates no function."""
        group = AgentActionGroup(
            stack,
            "Roc",
            action_group_name="roc",
            executor=ActionGroupExecutor.return_control(),
            schema=functions_schema(),
        )

        assert group.lambda_function is None
        assert group.executor_property.custom_control == RETURN_CONTROL
        assert group.executor_property.lambda_ is None
        Template.from_stack(stack).resource_count_is("AWS::Lambda::Function", 0)

    def test_delegate(self, stack):
        """Test delegation reuses an existing function."""
        existing = lambda_.Function.from_function_arn(stack, "Existing", FUNCTION_ARN)
        group = AgentActionGroup(
            stack,
            "Delegate",
            action_group_name="delegate",
            executor=ActionGroupExecutor.delegate(existing),
            schema=SchemaDefinition.inline('{"openapi": "3.0.0"}'),
        )

        prop = group.to_cfn_property()
        assert group.executor_property.lambda_ == FUNCTION_ARN
        assert prop.api_schema.payload == '{"openapi": "3.0.0"}'
        assert prop.function_schema is None
