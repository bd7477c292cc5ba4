"""
Example CDK applications built from agent blueprints.

Defines an HR agent backed by Aurora, the same agent with return of
control, and a restaurant agent with a knowledge base and guardrail.
"""
