"""
Agent definition and its fluent builder.

The definition is an immutable value; every ``with_*`` transition on it
returns a new definition. The builder wraps those transitions in a
chainable API and performs the whole-definition checks in build().
"""

import re
from enum import Enum
from typing import Any

from aws_cdk import Token
from pydantic import ConfigDict, Field

from agent_blueprints.builders.base import DefinitionModel
from agent_blueprints.errors import (
    ConfigurationError,
    DuplicateConfigurationError,
    PromptParserOverrideMissingError,
)

DEFAULT_FOUNDATION_MODEL = "anthropic.claude-v2"
DEFAULT_IDLE_SESSION_TTL_SECONDS = 1200
MIN_IDLE_SESSION_TTL_SECONDS = 60
MAX_IDLE_SESSION_TTL_SECONDS = 3600

USER_INPUT_ACTION_GROUP = "UserInputAction"
USER_INPUT_SIGNATURE = "AMAZON.UserInput"

LAMBDA_ARN_PATTERN = re.compile(
    r"^arn:(aws[a-zA-Z-]*)?:lambda:[a-z]{2}(-gov)?-[a-z]+-\d{1}:\d{12}:function:"
    r"[a-zA-Z0-9-_.]+(:(\$LATEST|[a-zA-Z0-9-_]+))?$"
)


class PromptType(str, Enum):
    """Agent sequence step a prompt template applies to."""

    PRE_PROCESSING = "PRE_PROCESSING"
    ORCHESTRATION = "ORCHESTRATION"
    KNOWLEDGE_BASE_RESPONSE_GENERATION = "KNOWLEDGE_BASE_RESPONSE_GENERATION"
    POST_PROCESSING = "POST_PROCESSING"


class PromptCreationMode(str, Enum):
    DEFAULT = "DEFAULT"
    OVERRIDDEN = "OVERRIDDEN"


class ParserMode(str, Enum):
    DEFAULT = "DEFAULT"
    OVERRIDDEN = "OVERRIDDEN"


class PromptState(str, Enum):
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


class InferenceConfiguration(DefinitionModel):
    """Model inference parameters used with a prompt template."""

    maximum_length: int | None = Field(default=None, ge=0)
    stop_sequences: tuple[str, ...] | None = None
    temperature: float | None = Field(default=None, ge=0, le=1)
    top_k: int | None = Field(default=None, ge=0)
    top_p: float | None = Field(default=None, ge=0, le=1)


class PromptConfiguration(DefinitionModel):
    """Override settings for one prompt phase."""

    prompt_type: PromptType | None = None
    prompt_creation_mode: PromptCreationMode | None = None
    parser_mode: ParserMode | None = None
    prompt_state: PromptState | None = None
    base_prompt_template: str | None = None
    inference_configuration: InferenceConfiguration | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.__dict__.values())


class PromptOverrideConfiguration(DefinitionModel):
    """Prompt overrides attached to the agent."""

    prompt_configurations: tuple[PromptConfiguration, ...] = ()
    override_lambda: str | None = None


class ParentActionGroup(DefinitionModel):
    """Built-in action group identified by a parent signature."""

    action_group_name: str
    parent_action_group_signature: str
    action_group_state: str = "ENABLED"


class AgentDefinition(DefinitionModel):
    """
    Immutable description of a Bedrock agent.

    Prompt configurations are keyed by prompt phase: each phase can be
    configured once.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    agent_name: str | None = None
    instruction: str | None = None
    foundation_model: str = DEFAULT_FOUNDATION_MODEL
    idle_session_ttl_in_seconds: int = DEFAULT_IDLE_SESSION_TTL_SECONDS
    description: str | None = None
    agent_resource_role_arn: str | None = None
    customer_encryption_key_arn: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    test_alias_tags: dict[str, str] = Field(default_factory=dict)
    parent_action_groups: tuple[ParentActionGroup, ...] = ()
    prompt_configurations: tuple[PromptConfiguration, ...] = ()
    override_lambda: str | None = None
    additional_properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def prompt_override_configuration(self) -> PromptOverrideConfiguration | None:
        """Prompt override section, or None when nothing is overridden."""
        if not self.prompt_configurations and not self.override_lambda:
            return None
        return PromptOverrideConfiguration(
            prompt_configurations=self.prompt_configurations,
            override_lambda=self.override_lambda,
        )

    def prompt_for(self, prompt_type: PromptType) -> PromptConfiguration | None:
        for prompt in self.prompt_configurations:
            if prompt.prompt_type == prompt_type:
                return prompt
        return None

    def evolve(self, **changes: Any) -> "AgentDefinition":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)

    def with_prompt_configuration(
        self,
        prompt: PromptConfiguration,
        expected_type: PromptType | None = None,
    ) -> "AgentDefinition":
        """
        Return a copy with one more prompt phase configured.

        Raises:
            ConfigurationError: The prompt is empty, its phase does not match
                ``expected_type`` or it overrides the template without one
            DuplicateConfigurationError: The phase is already configured
        """
        if prompt.is_empty():
            raise ConfigurationError("Prompt configuration cannot be empty")

        if prompt.prompt_type is None and expected_type is not None:
            prompt = prompt.model_copy(update={"prompt_type": expected_type})
        if prompt.prompt_type is None:
            raise ConfigurationError("Prompt configuration must set prompt_type")
        if expected_type is not None and prompt.prompt_type != expected_type:
            raise ConfigurationError(
                f"Prompt type {prompt.prompt_type.value} does not match {expected_type.value}"
            )

        if prompt.prompt_creation_mode == PromptCreationMode.OVERRIDDEN and not prompt.base_prompt_template:
            raise ConfigurationError(
                "base_prompt_template is required when prompt_creation_mode is OVERRIDDEN"
            )

        if self.prompt_for(prompt.prompt_type) is not None:
            raise DuplicateConfigurationError(
                f"{prompt.prompt_type.value} is already defined for this agent definition."
            )

        return self.evolve(prompt_configurations=self.prompt_configurations + (prompt,))

    def with_parent_action_group(self, group: ParentActionGroup) -> "AgentDefinition":
        """Return a copy with a built-in action group; repeated signatures are ignored."""
        signatures = {g.parent_action_group_signature for g in self.parent_action_groups}
        if group.parent_action_group_signature in signatures:
            return self
        return self.evolve(parent_action_groups=self.parent_action_groups + (group,))


class AgentDefinitionBuilder:
    """
    Fluent builder for an AgentDefinition.

    Example:
        definition = (
            AgentDefinitionBuilder()
            .with_agent_name("hr-assistant")
            .with_instruction("You are an HR assistant ...")
            .with_user_input()
            .build()
        )
    """

    def __init__(
        self,
        agent_name: str | None = None,
        instruction: str | None = None,
        foundation_model: str = DEFAULT_FOUNDATION_MODEL,
    ):
        self._definition = AgentDefinition(
            agent_name=agent_name,
            instruction=instruction,
            foundation_model=foundation_model,
        )

    @property
    def definition(self) -> AgentDefinition:
        """The definition accumulated so far, without build() validation."""
        return self._definition

    def _update(self, **changes: Any) -> "AgentDefinitionBuilder":
        self._definition = self._definition.evolve(**changes)
        return self

    def with_agent_name(self, agent_name: str) -> "AgentDefinitionBuilder":
        return self._update(agent_name=agent_name)

    def with_instruction(self, instruction: str) -> "AgentDefinitionBuilder":
        return self._update(instruction=instruction)

    def with_foundation_model(self, foundation_model: str) -> "AgentDefinitionBuilder":
        return self._update(foundation_model=foundation_model)

    def with_description(self, description: str) -> "AgentDefinitionBuilder":
        return self._update(description=description)

    def with_idle_session_ttl(self, seconds: int) -> "AgentDefinitionBuilder":
        if not MIN_IDLE_SESSION_TTL_SECONDS <= seconds <= MAX_IDLE_SESSION_TTL_SECONDS:
            raise ConfigurationError(
                f"Idle session TTL must be between {MIN_IDLE_SESSION_TTL_SECONDS} "
                f"and {MAX_IDLE_SESSION_TTL_SECONDS} seconds"
            )
        return self._update(idle_session_ttl_in_seconds=seconds)

    def with_agent_resource_role_arn(self, role_arn: str) -> "AgentDefinitionBuilder":
        return self._update(agent_resource_role_arn=role_arn)

    def with_customer_encryption_key_arn(self, key_arn: str) -> "AgentDefinitionBuilder":
        return self._update(customer_encryption_key_arn=key_arn)

    def with_tags(self, tags: dict[str, str]) -> "AgentDefinitionBuilder":
        return self._update(tags={**self._definition.tags, **tags})

    def with_test_alias_tags(self, tags: dict[str, str]) -> "AgentDefinitionBuilder":
        return self._update(test_alias_tags={**self._definition.test_alias_tags, **tags})

    def with_additional_properties(self, **properties: Any) -> "AgentDefinitionBuilder":
        """Extra keyword arguments passed through to CfnAgent."""
        return self._update(
            additional_properties={**self._definition.additional_properties, **properties}
        )

    def with_user_input(self) -> "AgentDefinitionBuilder":
        """Let the agent ask the user for missing information."""
        self._definition = self._definition.with_parent_action_group(
            ParentActionGroup(
                action_group_name=USER_INPUT_ACTION_GROUP,
                parent_action_group_signature=USER_INPUT_SIGNATURE,
            )
        )
        return self

    def with_prompt_configuration(self, prompt: PromptConfiguration) -> "AgentDefinitionBuilder":
        self._definition = self._definition.with_prompt_configuration(prompt)
        return self

    def with_pre_processing_prompt(self, prompt: PromptConfiguration) -> "AgentDefinitionBuilder":
        self._definition = self._definition.with_prompt_configuration(prompt, PromptType.PRE_PROCESSING)
        return self

    def with_orchestration_prompt(self, prompt: PromptConfiguration) -> "AgentDefinitionBuilder":
        self._definition = self._definition.with_prompt_configuration(prompt, PromptType.ORCHESTRATION)
        return self

    def with_kb_response_generation_prompt(self, prompt: PromptConfiguration) -> "AgentDefinitionBuilder":
        self._definition = self._definition.with_prompt_configuration(
            prompt, PromptType.KNOWLEDGE_BASE_RESPONSE_GENERATION
        )
        return self

    def with_post_processing_prompt(self, prompt: PromptConfiguration) -> "AgentDefinitionBuilder":
        self._definition = self._definition.with_prompt_configuration(prompt, PromptType.POST_PROCESSING)
        return self

    def with_prompt_parser_override(self, lambda_arn: str) -> "AgentDefinitionBuilder":
        """
        Use a Lambda function to parse model output for OVERRIDDEN parser modes.

        Raises:
            ConfigurationError: The value is neither a Lambda ARN nor a CDK token
        """
        if not Token.is_unresolved(lambda_arn) and not LAMBDA_ARN_PATTERN.match(lambda_arn):
            raise ConfigurationError(f"Invalid Lambda function ARN: {lambda_arn}")
        return self._update(override_lambda=lambda_arn)

    def build(self) -> AgentDefinition:
        """
        Validate and return the accumulated definition.

        Raises:
            ConfigurationError: Name or instruction is missing
            PromptParserOverrideMissingError: A prompt uses an OVERRIDDEN
                parser mode but no parser Lambda is set
        """
        definition = self._definition
        if not definition.agent_name:
            raise ConfigurationError("Agent name is required")
        if not definition.instruction:
            raise ConfigurationError("Instruction is required")

        overridden = [
            p.prompt_type.value
            for p in definition.prompt_configurations
            if p.parser_mode == ParserMode.OVERRIDDEN
        ]
        if overridden and not definition.override_lambda:
            raise PromptParserOverrideMissingError(
                "override_lambda must be set with with_prompt_parser_override() "
                f"when parser_mode is OVERRIDDEN (prompts: {', '.join(overridden)})"
            )
        return definition.evolve(
            tags=dict(definition.tags),
            test_alias_tags=dict(definition.test_alias_tags),
            additional_properties=dict(definition.additional_properties),
        )
