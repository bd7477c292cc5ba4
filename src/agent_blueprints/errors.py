"""
Exception hierarchy for agent blueprints.

Configuration errors are raised synchronously while a definition is
being built or assembled. Provisioning errors are raised inside the
custom-resource Lambdas and classify what the remote service told us.
"""

from typing import Any


class BlueprintError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(BlueprintError):
    """A definition or assembly input is invalid."""


class DuplicateConfigurationError(ConfigurationError):
    """A keyed sub-section (prompt phase, filter type, ...) was added twice."""


class PromptParserOverrideMissingError(ConfigurationError):
    """A prompt uses an overridden parser but no parser Lambda is set."""


class ProvisioningError(BlueprintError):
    """
    Base class for custom-resource provisioning errors.

    Carries the logical resource name and the raw service response, when
    there is one, so failures reported back to CloudFormation are
    self-describing.
    """

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        response: Any = None,
    ):
        self.message = message
        self.resource = resource
        self.response = response
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]
        if self.resource:
            parts.append(f"resource={self.resource}")
        if self.response is not None:
            parts.append(f"response={self.response}")
        return " | ".join(parts)


class TransientServiceState(ProvisioningError):
    """The service is not ready yet; the operation may succeed on retry."""


class PermanentServiceRejection(ProvisioningError):
    """The service rejected the request; retrying will not help."""


class AlreadyAbsent(ProvisioningError):
    """The resource does not exist. Success when deleting."""


class ProvisioningFailure(ProvisioningError):
    """A provisioning request could not be completed."""


class RetryExhausted(ProvisioningFailure):
    """An operation stayed in a transient state for every allowed attempt."""

    def __init__(
        self,
        description: str,
        *,
        attempts: int,
        last_error: BaseException | None,
        resource: str | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{description} did not succeed after {attempts} attempts: {last_error}",
            resource=resource,
            response=getattr(last_error, "response", None),
        )
