"""
Guardrail definition and its fluent builder.
"""

from enum import Enum

from pydantic import Field

from agent_blueprints.builders.base import DefinitionModel
from agent_blueprints.errors import ConfigurationError, DuplicateConfigurationError

DEFAULT_BLOCKED_INPUT_MESSAGE = "Invalid input. Query violates our usage policy."
DEFAULT_BLOCKED_OUTPUT_MESSAGE = "Unable to process. Query violates our usage policy."


class FilterType(str, Enum):
    VIOLENCE = "VIOLENCE"
    HATE = "HATE"
    INSULTS = "INSULTS"
    MISCONDUCT = "MISCONDUCT"
    PROMPT_ATTACK = "PROMPT_ATTACK"
    SEXUAL = "SEXUAL"


class FilterStrength(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PIIAction(str, Enum):
    BLOCK = "BLOCK"
    ANONYMIZE = "ANONYMIZE"


class PIIType(str, Enum):
    """Sensitive information categories recognised by Bedrock guardrails."""

    ADDRESS = "ADDRESS"
    AGE = "AGE"
    AWS_ACCESS_KEY = "AWS_ACCESS_KEY"
    AWS_SECRET_KEY = "AWS_SECRET_KEY"
    CA_HEALTH_NUMBER = "CA_HEALTH_NUMBER"
    CA_SOCIAL_INSURANCE_NUMBER = "CA_SOCIAL_INSURANCE_NUMBER"
    CREDIT_DEBIT_CARD_CVV = "CREDIT_DEBIT_CARD_CVV"
    CREDIT_DEBIT_CARD_EXPIRY = "CREDIT_DEBIT_CARD_EXPIRY"
    CREDIT_DEBIT_CARD_NUMBER = "CREDIT_DEBIT_CARD_NUMBER"
    DRIVER_ID = "DRIVER_ID"
    EMAIL = "EMAIL"
    INTERNATIONAL_BANK_ACCOUNT_NUMBER = "INTERNATIONAL_BANK_ACCOUNT_NUMBER"
    IP_ADDRESS = "IP_ADDRESS"
    LICENSE_PLATE = "LICENSE_PLATE"
    MAC_ADDRESS = "MAC_ADDRESS"
    NAME = "NAME"
    PASSWORD = "PASSWORD"
    PHONE = "PHONE"
    PIN = "PIN"
    SWIFT_CODE = "SWIFT_CODE"
    UK_NATIONAL_HEALTH_SERVICE_NUMBER = "UK_NATIONAL_HEALTH_SERVICE_NUMBER"
    UK_NATIONAL_INSURANCE_NUMBER = "UK_NATIONAL_INSURANCE_NUMBER"
    UK_UNIQUE_TAXPAYER_REFERENCE_NUMBER = "UK_UNIQUE_TAXPAYER_REFERENCE_NUMBER"
    URL = "URL"
    USERNAME = "USERNAME"
    US_BANK_ACCOUNT_NUMBER = "US_BANK_ACCOUNT_NUMBER"
    US_BANK_ROUTING_NUMBER = "US_BANK_ROUTING_NUMBER"
    US_INDIVIDUAL_TAX_IDENTIFICATION_NUMBER = "US_INDIVIDUAL_TAX_IDENTIFICATION_NUMBER"
    US_PASSPORT_NUMBER = "US_PASSPORT_NUMBER"
    US_SOCIAL_SECURITY_NUMBER = "US_SOCIAL_SECURITY_NUMBER"
    VEHICLE_IDENTIFICATION_NUMBER = "VEHICLE_IDENTIFICATION_NUMBER"


class ManagedWordsType(str, Enum):
    PROFANITY = "PROFANITY"


class ContentFilter(DefinitionModel):
    type: FilterType
    input_strength: FilterStrength = FilterStrength.HIGH
    output_strength: FilterStrength = FilterStrength.HIGH


class PIIEntity(DefinitionModel):
    type: PIIType
    action: PIIAction


class DeniedTopic(DefinitionModel):
    name: str = Field(min_length=1, max_length=100)
    definition: str = Field(min_length=1, max_length=200)
    examples: tuple[str, ...] = ()
    type: str = "DENY"


class GuardrailDefinition(DefinitionModel):
    """Immutable description of a Bedrock guardrail."""

    name: str
    blocked_input_messaging: str = DEFAULT_BLOCKED_INPUT_MESSAGE
    blocked_outputs_messaging: str = DEFAULT_BLOCKED_OUTPUT_MESSAGE
    description: str | None = None
    kms_key_arn: str | None = None
    content_filters: tuple[ContentFilter, ...] = ()
    pii_entities: tuple[PIIEntity, ...] = ()
    denied_topics: tuple[DeniedTopic, ...] = ()
    managed_word_lists: tuple[ManagedWordsType, ...] = ()
    words: tuple[str, ...] = ()

    def has_policies(self) -> bool:
        return bool(
            self.content_filters
            or self.pii_entities
            or self.denied_topics
            or self.managed_word_lists
            or self.words
        )


class GuardrailBuilder:
    """
    Fluent builder for a GuardrailDefinition.

    Content filters, PII entities and topics are keyed by filter type,
    PII type and topic name respectively; adding the same key twice is
    rejected. Word lists are de-duplicated silently.
    """

    def __init__(
        self,
        name: str,
        blocked_input_messaging: str = DEFAULT_BLOCKED_INPUT_MESSAGE,
        blocked_outputs_messaging: str = DEFAULT_BLOCKED_OUTPUT_MESSAGE,
        description: str | None = None,
        kms_key_arn: str | None = None,
    ):
        self._definition = GuardrailDefinition(
            name=name,
            blocked_input_messaging=blocked_input_messaging,
            blocked_outputs_messaging=blocked_outputs_messaging,
            description=description,
            kms_key_arn=kms_key_arn,
        )

    def with_filter(
        self,
        filter_type: FilterType,
        input_strength: FilterStrength = FilterStrength.HIGH,
        output_strength: FilterStrength | None = None,
    ) -> "GuardrailBuilder":
        """
        Add a content filter.

        Prompt-attack filters only inspect input, so their output strength
        defaults to (and must be) NONE.
        """
        if filter_type == FilterType.PROMPT_ATTACK:
            output_strength = output_strength or FilterStrength.NONE
            if output_strength != FilterStrength.NONE:
                raise ConfigurationError("PROMPT_ATTACK filters must use output strength NONE")
        else:
            output_strength = output_strength or FilterStrength.HIGH

        if any(f.type == filter_type for f in self._definition.content_filters):
            raise DuplicateConfigurationError(f"Content filter {filter_type.value} is already defined")

        content_filter = ContentFilter(
            type=filter_type,
            input_strength=input_strength,
            output_strength=output_strength,
        )
        self._definition = self._definition.model_copy(
            update={"content_filters": self._definition.content_filters + (content_filter,)}
        )
        return self

    def with_pii(self, pii_type: PIIType, action: PIIAction) -> "GuardrailBuilder":
        if any(p.type == pii_type for p in self._definition.pii_entities):
            raise DuplicateConfigurationError(f"PII entity {pii_type.value} is already defined")
        entity = PIIEntity(type=pii_type, action=action)
        self._definition = self._definition.model_copy(
            update={"pii_entities": self._definition.pii_entities + (entity,)}
        )
        return self

    def with_topic(self, name: str, definition: str, examples: list[str] | None = None) -> "GuardrailBuilder":
        """Deny a topic, described by a definition and optional example prompts."""
        if any(t.name == name for t in self._definition.denied_topics):
            raise DuplicateConfigurationError(f"Topic {name} is already defined")
        topic = DeniedTopic(name=name, definition=definition, examples=tuple(examples or ()))
        self._definition = self._definition.model_copy(
            update={"denied_topics": self._definition.denied_topics + (topic,)}
        )
        return self

    def with_managed_words(self, words_type: ManagedWordsType) -> "GuardrailBuilder":
        if words_type not in self._definition.managed_word_lists:
            self._definition = self._definition.model_copy(
                update={"managed_word_lists": self._definition.managed_word_lists + (words_type,)}
            )
        return self

    def with_words(self, words: list[str]) -> "GuardrailBuilder":
        merged = list(self._definition.words)
        for word in words:
            if word and word not in merged:
                merged.append(word)
        self._definition = self._definition.model_copy(update={"words": tuple(merged)})
        return self

    def build(self) -> GuardrailDefinition:
        """
        Validate and return the accumulated definition.

        Raises:
            ConfigurationError: The guardrail has no name
        """
        if not self._definition.name:
            raise ConfigurationError("Guardrail name is required")
        return self._definition
