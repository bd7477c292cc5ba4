#!/usr/bin/env python3
"""
CDK Application entry point for the example agents.

Deploy with: cdk deploy --all
Skip knowledge base creation with: cdk deploy -c skipKBCreation=true
"""

import aws_cdk as cdk

from agent_blueprints import DeploymentContext

from stack import (
    AgentWithFunctionDefinitionStack,
    AgentWithKnowledgeBaseAndGuardrailsStack,
    AgentWithReturnOfControlStack,
    HRAssistDataStack,
)


def main():
    """Create and configure the CDK app."""
    app = cdk.App()

    # Resolve the target environment from CDK_DEFAULT_ACCOUNT / CDK_DEFAULT_REGION
    context = DeploymentContext.from_settings()
    env = cdk.Environment(account=context.account, region=context.region)

    data_stack = HRAssistDataStack(
        app,
        "HRAssistDataStack",
        env=env,
        description="Sample HR database for the function definition agent",
    )

    function_stack = AgentWithFunctionDefinitionStack(
        app,
        "AgentWithFunctionDefinitionStack",
        env=env,
        description="HR agent with a Lambda-backed action group",
    )
    function_stack.add_dependency(data_stack)

    AgentWithReturnOfControlStack(
        app,
        "AgentWithReturnOfControlStack",
        env=env,
        description="HR agent that returns control to the caller",
    )

    AgentWithKnowledgeBaseAndGuardrailsStack(
        app,
        "AgentWithKnowledgeBaseAndGuardrailsStack",
        env=env,
        description="Restaurant agent with a knowledge base and guardrail",
    )

    # Add tags to all resources
    cdk.Tags.of(app).add("Project", "AgentBlueprints")
    cdk.Tags.of(app).add("ManagedBy", "CDK")

    app.synth()


if __name__ == "__main__":
    main()
