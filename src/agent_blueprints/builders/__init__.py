"""
Validating builders for agent, guardrail and action group definitions.
"""

from agent_blueprints.builders.action_group import (
    ActionGroupExecutor,
    ActionGroupState,
    CodeKind,
    ExecutorKind,
    FunctionDefinition,
    LambdaDefinition,
    ParameterDetail,
    SchemaDefinition,
)
from agent_blueprints.builders.agent import (
    AgentDefinition,
    AgentDefinitionBuilder,
    InferenceConfiguration,
    ParserMode,
    PromptConfiguration,
    PromptCreationMode,
    PromptState,
    PromptType,
)
from agent_blueprints.builders.guardrail import (
    FilterStrength,
    FilterType,
    GuardrailBuilder,
    GuardrailDefinition,
    ManagedWordsType,
    PIIAction,
    PIIType,
)

__all__ = [
    "ActionGroupExecutor",
    "ActionGroupState",
    "AgentDefinition",
    "AgentDefinitionBuilder",
    "CodeKind",
    "ExecutorKind",
    "FilterStrength",
    "FilterType",
    "FunctionDefinition",
    "GuardrailBuilder",
    "GuardrailDefinition",
    "InferenceConfiguration",
    "LambdaDefinition",
    "ManagedWordsType",
    "PIIAction",
    "PIIType",
    "ParameterDetail",
    "ParserMode",
    "PromptConfiguration",
    "PromptCreationMode",
    "PromptState",
    "PromptType",
    "SchemaDefinition",
]
