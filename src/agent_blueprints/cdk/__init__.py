"""
CDK constructs for Bedrock agents and their supporting resources.
"""

from agent_blueprints.cdk.action_group import AgentActionGroup
from agent_blueprints.cdk.blueprint import AssemblyStage, BedrockAgentBlueprint
from agent_blueprints.cdk.guardrail import BedrockGuardrail
from agent_blueprints.cdk.knowledge_base import AgentKnowledgeBase, StorageType
from agent_blueprints.cdk.opensearch import OpenSearchServerlessCollection
from agent_blueprints.cdk.provisioner import ProvisionerResource

__all__ = [
    "AgentActionGroup",
    "AgentKnowledgeBase",
    "AssemblyStage",
    "BedrockAgentBlueprint",
    "BedrockGuardrail",
    "OpenSearchServerlessCollection",
    "ProvisionerResource",
    "StorageType",
]
