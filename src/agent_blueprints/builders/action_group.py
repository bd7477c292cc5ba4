"""
Action group executor and schema declarations.

An action group is backed by exactly one executor strategy:

- delegate to an existing Lambda function,
- create a Lambda function from code,
- return control to the calling application.

The code kind of a created function is declared by the caller, never
guessed from its contents.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from pydantic import Field

from agent_blueprints.builders.base import DefinitionModel
from agent_blueprints.errors import ConfigurationError

RETURN_CONTROL = "RETURN_CONTROL"
INLINE_DEFAULT_TIMEOUT_MINUTES = 1
PACKAGED_DEFAULT_TIMEOUT_MINUTES = 15


class ExecutorKind(str, Enum):
    DELEGATE = "delegate"
    CREATE_FROM_CODE = "create_from_code"
    RETURN_CONTROL = "return_control"


class CodeKind(str, Enum):
    """How the source of a created function is shipped."""

    INLINE = "inline"  # embedded in the template
    PACKAGED = "packaged"  # staged as a deployment asset


class ActionGroupState(str, Enum):
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


@dataclass(frozen=True)
class LambdaDefinition:
    """
    Source and execution settings for a function created for an action group.

    ``code`` may be source text or bytes, a path to a source file or
    directory, or a ready ``lambda_.Code``. Text, bytes and paths need an
    explicit ``code_kind``; INLINE only accepts text or bytes.
    """

    code: str | bytes | Path | lambda_.Code
    handler: str
    runtime: lambda_.Runtime = field(default_factory=lambda: lambda_.Runtime.PYTHON_3_12)
    code_kind: CodeKind | None = None
    timeout_minutes: int | None = None
    memory_size: int = 256
    environment: dict[str, str] = field(default_factory=dict)
    managed_policies: list[iam.IManagedPolicy] = field(default_factory=list)
    inline_policies: dict[str, iam.PolicyDocument] = field(default_factory=dict)

    def __post_init__(self):
        if not self.handler:
            raise ConfigurationError("Lambda handler is required")
        if self.timeout_minutes is not None and not 1 <= self.timeout_minutes <= 15:
            raise ConfigurationError("Lambda timeout must be between 1 and 15 minutes")
        if isinstance(self.code, lambda_.Code):
            return
        if self.code_kind is None:
            raise ConfigurationError("code_kind must be declared for Lambda source code")
        if isinstance(self.code, (str, bytes)) and not self.code.strip():
            raise ConfigurationError("Lambda source code is empty")
        if self.code_kind == CodeKind.INLINE and isinstance(self.code, Path):
            raise ConfigurationError("INLINE code must be given as text, not a path")
        if isinstance(self.code, Path) and not self.code.exists():
            raise ConfigurationError(f"Lambda source path does not exist: {self.code}")

    @property
    def is_inline(self) -> bool:
        return self.code_kind == CodeKind.INLINE and not isinstance(self.code, lambda_.Code)

    @property
    def effective_timeout_minutes(self) -> int:
        if self.timeout_minutes is not None:
            return self.timeout_minutes
        return INLINE_DEFAULT_TIMEOUT_MINUTES if self.is_inline else PACKAGED_DEFAULT_TIMEOUT_MINUTES


@dataclass(frozen=True)
class ActionGroupExecutor:
    """
    Exactly one of the three executor strategies.

    Prefer the ``delegate`` / ``from_code`` / ``return_control``
    constructors; populating zero or several fields raises.
    """

    lambda_function: lambda_.IFunction | None = None
    lambda_definition: LambdaDefinition | None = None
    custom_control: str | None = None

    def __post_init__(self):
        populated = [
            name
            for name in ("lambda_function", "lambda_definition", "custom_control")
            if getattr(self, name) is not None
        ]
        if len(populated) != 1:
            raise ConfigurationError(
                "Exactly one of lambda_function, lambda_definition or custom_control "
                f"must be set (got {', '.join(populated) or 'none'})"
            )
        if self.custom_control is not None and self.custom_control != RETURN_CONTROL:
            raise ConfigurationError(f"Unsupported custom control: {self.custom_control}")

    @classmethod
    def delegate(cls, function: lambda_.IFunction) -> "ActionGroupExecutor":
        return cls(lambda_function=function)

    @classmethod
    def from_code(cls, definition: LambdaDefinition) -> "ActionGroupExecutor":
        return cls(lambda_definition=definition)

    @classmethod
    def return_control(cls) -> "ActionGroupExecutor":
        return cls(custom_control=RETURN_CONTROL)

    @property
    def kind(self) -> ExecutorKind:
        if self.lambda_function is not None:
            return ExecutorKind.DELEGATE
        if self.lambda_definition is not None:
            return ExecutorKind.CREATE_FROM_CODE
        return ExecutorKind.RETURN_CONTROL

    def describe(self) -> dict[str, Any]:
        """Populated variant only, keyed by field name."""
        return {
            name: value
            for name, value in (
                ("lambda_function", self.lambda_function),
                ("lambda_definition", self.lambda_definition),
                ("custom_control", self.custom_control),
            )
            if value is not None
        }


class ParameterDetail(DefinitionModel):
    type: str
    description: str | None = None
    required: bool = False


class FunctionDefinition(DefinitionModel):
    """A function the agent can call, with typed parameters."""

    name: str = Field(min_length=1)
    description: str | None = None
    parameters: dict[str, ParameterDetail] = Field(default_factory=dict)


@dataclass(frozen=True)
class SchemaDefinition:
    """
    The API an action group exposes: exactly one of an inline OpenAPI
    document, an OpenAPI file uploaded to S3, or a list of functions.
    """

    inline_api_schema: str | None = None
    api_schema_file: str | bytes | Path | None = None
    function_schema: tuple[FunctionDefinition, ...] | None = None

    def __post_init__(self):
        populated = [
            name
            for name in ("inline_api_schema", "api_schema_file", "function_schema")
            if getattr(self, name) is not None
        ]
        if not populated:
            raise ConfigurationError(
                "OpenAPI schema or functionDefinition schema required for creating action group"
            )
        if len(populated) > 1:
            raise ConfigurationError(
                f"Only one schema source may be set (got {', '.join(populated)})"
            )
        if self.function_schema is not None:
            functions = tuple(
                f if isinstance(f, FunctionDefinition) else FunctionDefinition.model_validate(f)
                for f in self.function_schema
            )
            if not functions:
                raise ConfigurationError("Function schema must define at least one function")
            object.__setattr__(self, "function_schema", functions)

    @classmethod
    def inline(cls, schema: str) -> "SchemaDefinition":
        return cls(inline_api_schema=schema)

    @classmethod
    def from_file(cls, schema: str | bytes | Path) -> "SchemaDefinition":
        return cls(api_schema_file=schema)

    @classmethod
    def functions(cls, functions: list[FunctionDefinition | dict[str, Any]]) -> "SchemaDefinition":
        return cls(function_schema=tuple(functions))

    @property
    def requires_artifact_storage(self) -> bool:
        return self.api_schema_file is not None

    def schema_file_text(self) -> str:
        """Contents of the schema file as text."""
        value = self.api_schema_file
        if isinstance(value, Path):
            return value.read_text(encoding="utf-8")
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value or ""
