"""
Custom-resource provisioners for eventually consistent AWS services.

Each provisioner implements the CloudFormation custom-resource contract
(Create / Update / Delete in, PhysicalResourceId out) and polls the
remote service with a fixed-delay retry policy until it reports ready.
"""

from agent_blueprints.provisioning.models import (
    ProvisioningRequest,
    ProvisioningResult,
    RequestType,
)
from agent_blueprints.provisioning.retry import RetryPolicy, is_transient, run_with_retry

__all__ = [
    "ProvisioningRequest",
    "ProvisioningResult",
    "RequestType",
    "RetryPolicy",
    "is_transient",
    "run_with_retry",
]
