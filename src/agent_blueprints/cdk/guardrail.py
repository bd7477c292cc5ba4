"""
Bedrock guardrail resource built from a GuardrailDefinition.
"""

from aws_cdk import aws_bedrock as bedrock
from aws_cdk import aws_kms as kms
from constructs import Construct

from agent_blueprints.builders.guardrail import GuardrailDefinition


class BedrockGuardrail(Construct):
    """
    A CfnGuardrail with only the policy sections the definition populates.

    When the definition carries no KMS key and ``generate_kms_key`` is
    set, a customer managed key with rotation enabled is created for it.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        definition: GuardrailDefinition,
        generate_kms_key: bool = False,
    ) -> None:
        super().__init__(scope, construct_id)

        self.definition = definition
        self.kms_key: kms.Key | None = None
        self.kms_key_arn = definition.kms_key_arn

        if self.kms_key_arn is None and generate_kms_key:
            self.kms_key = kms.Key(
                self,
                "Key",
                enable_key_rotation=True,
                description=f"Encryption key for guardrail {definition.name}",
            )
            self.kms_key_arn = self.kms_key.key_arn

        self.guardrail = bedrock.CfnGuardrail(
            self,
            "Guardrail",
            name=definition.name,
            description=definition.description,
            blocked_input_messaging=definition.blocked_input_messaging,
            blocked_outputs_messaging=definition.blocked_outputs_messaging,
            kms_key_arn=self.kms_key_arn,
            content_policy_config=self._content_policy(),
            sensitive_information_policy_config=self._sensitive_information_policy(),
            topic_policy_config=self._topic_policy(),
            word_policy_config=self._word_policy(),
        )

        self.guardrail_id = self.guardrail.attr_guardrail_id
        self.guardrail_arn = self.guardrail.attr_guardrail_arn
        self.guardrail_version = self.guardrail.attr_version

    def _content_policy(self):
        if not self.definition.content_filters:
            return None
        return bedrock.CfnGuardrail.ContentPolicyConfigProperty(
            filters_config=[
                bedrock.CfnGuardrail.ContentFilterConfigProperty(
                    type=f.type.value,
                    input_strength=f.input_strength.value,
                    output_strength=f.output_strength.value,
                )
                for f in self.definition.content_filters
            ]
        )

    def _sensitive_information_policy(self):
        if not self.definition.pii_entities:
            return None
        return bedrock.CfnGuardrail.SensitiveInformationPolicyConfigProperty(
            pii_entities_config=[
                bedrock.CfnGuardrail.PiiEntityConfigProperty(
                    type=entity.type.value,
                    action=entity.action.value,
                )
                for entity in self.definition.pii_entities
            ]
        )

    def _topic_policy(self):
        if not self.definition.denied_topics:
            return None
        return bedrock.CfnGuardrail.TopicPolicyConfigProperty(
            topics_config=[
                bedrock.CfnGuardrail.TopicConfigProperty(
                    name=topic.name,
                    definition=topic.definition,
                    type=topic.type,
                    examples=list(topic.examples) or None,
                )
                for topic in self.definition.denied_topics
            ]
        )

    def _word_policy(self):
        if not self.definition.words and not self.definition.managed_word_lists:
            return None
        return bedrock.CfnGuardrail.WordPolicyConfigProperty(
            managed_word_lists_config=[
                bedrock.CfnGuardrail.ManagedWordsConfigProperty(type=words_type.value)
                for words_type in self.definition.managed_word_lists
            ] or None,
            words_config=[
                bedrock.CfnGuardrail.WordConfigProperty(text=word)
                for word in self.definition.words
            ] or None,
        )
