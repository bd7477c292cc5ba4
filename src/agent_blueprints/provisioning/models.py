"""
Request and result models for the custom-resource contract.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agent_blueprints.errors import ProvisioningFailure


class RequestType(str, Enum):
    """Lifecycle event sent by CloudFormation."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


class ProvisioningRequest(BaseModel):
    """A single custom-resource lifecycle event."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    request_type: RequestType = Field(alias="RequestType")
    resource_properties: dict[str, Any] = Field(default_factory=dict, alias="ResourceProperties")
    old_resource_properties: dict[str, Any] | None = Field(default=None, alias="OldResourceProperties")
    physical_resource_id: str | None = Field(default=None, alias="PhysicalResourceId")
    logical_resource_id: str | None = Field(default=None, alias="LogicalResourceId")

    def require(self, name: str) -> Any:
        """Return a resource property, failing when it is missing or empty."""
        value = self.resource_properties.get(name)
        if value is None or value == "":
            raise ProvisioningFailure(
                f"Missing required resource property '{name}'",
                resource=self.logical_resource_id,
            )
        return value


class ProvisioningResult(BaseModel):
    """Outcome reported back to the provider framework."""

    physical_resource_id: str
    reason: str | None = None

    def to_response(self) -> dict[str, Any]:
        response: dict[str, Any] = {"PhysicalResourceId": self.physical_resource_id}
        if self.reason:
            response["Reason"] = self.reason
        return response
