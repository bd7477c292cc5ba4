"""
Base class for custom-resource provisioners.

Dispatches a CloudFormation lifecycle event to on_create / on_update /
on_delete and converts the outcome to the provider-framework response.
"""

from abc import ABC, abstractmethod
from typing import Any

import structlog
from pydantic import ValidationError

from agent_blueprints.errors import ProvisioningFailure
from agent_blueprints.provisioning.models import ProvisioningRequest, ProvisioningResult, RequestType

logger = structlog.get_logger(__name__)


class Provisioner(ABC):
    """
    A Create/Update/Delete state machine behind the custom-resource contract.

    Implementations must be safe to invoke again against resources they
    already (partially) created, and must treat a resource that is already
    gone as a successful delete.
    """

    name: str = "provisioner"

    def handle(self, event: dict[str, Any]) -> dict[str, Any]:
        """
        Handle one lifecycle event.

        Args:
            event: Raw custom-resource event from the provider framework

        Returns:
            Dict with PhysicalResourceId and, optionally, Reason
        """
        try:
            request = ProvisioningRequest.model_validate(event)
        except ValidationError as e:
            raise ProvisioningFailure(
                f"Unsupported custom resource request: {e.errors()[0]['msg']}",
                resource=event.get("LogicalResourceId"),
            ) from e

        log = logger.bind(
            provisioner=self.name,
            request_type=request.request_type.value,
            logical_resource_id=request.logical_resource_id,
        )
        log.info("Handling custom resource event")

        handlers = {
            RequestType.CREATE: self.on_create,
            RequestType.UPDATE: self.on_update,
            RequestType.DELETE: self.on_delete,
        }
        result = handlers[request.request_type](request)

        log.info(
            "Custom resource event handled",
            physical_resource_id=result.physical_resource_id,
            reason=result.reason,
        )
        return result.to_response()

    @abstractmethod
    def on_create(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Create the resource."""

    @abstractmethod
    def on_update(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Bring the resource in line with the new properties."""

    @abstractmethod
    def on_delete(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Delete the resource, treating absence as success."""

    @staticmethod
    def previous_id(request: ProvisioningRequest, fallback: str) -> str:
        """Physical id CloudFormation already knows, or a fallback."""
        return request.physical_resource_id or fallback
