"""
Wait until a vector index is visible to the knowledge base's principals.

Bedrock validates the index when the knowledge base is created, so the
knowledge base must not be created before the collection's data access
policy has propagated and the index answers to a signed request.
"""

import structlog
from opensearchpy.exceptions import TransportError

from agent_blueprints.config import Settings, get_settings
from agent_blueprints.errors import AlreadyAbsent, TransientServiceState
from agent_blueprints.provisioning.base import Provisioner
from agent_blueprints.provisioning.index_operation import index_physical_id
from agent_blueprints.provisioning.models import ProvisioningRequest, ProvisioningResult
from agent_blueprints.provisioning.opensearch import ClientFactory, classify_error, create_opensearch_client
from agent_blueprints.provisioning.retry import RetryPolicy, run_with_retry

logger = structlog.get_logger(__name__)


class IndexExistenceValidator(Provisioner):
    """Polls for an index until it exists; Delete is a no-op."""

    name = "index-existence-validator"

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the validator."""
        self.settings = settings or get_settings()
        self._client_factory = client_factory or (
            lambda endpoint: create_opensearch_client(endpoint, self.settings)
        )
        self.retry_policy = retry_policy or RetryPolicy.for_index(self.settings.provisioner)

    def on_create(self, request: ProvisioningRequest) -> ProvisioningResult:
        return self._validate(request)

    def on_update(self, request: ProvisioningRequest) -> ProvisioningResult:
        return self._validate(request)

    def on_delete(self, request: ProvisioningRequest) -> ProvisioningResult:
        index_name = request.resource_properties.get("indexName", "")
        return ProvisioningResult(
            physical_resource_id=self.previous_id(request, index_physical_id(index_name))
        )

    def _validate(self, request: ProvisioningRequest) -> ProvisioningResult:
        index_name = request.require("indexName")
        client = self._client_factory(request.require("collectionEndpoint"))

        def attempt() -> None:
            try:
                exists = client.indices.exists(index=index_name)
            except TransportError as e:
                error = classify_error(e, index_name)
                if isinstance(error, AlreadyAbsent):
                    raise TransientServiceState("Index not found", resource=index_name) from e
                raise error from e
            if not exists:
                raise TransientServiceState("Index not found", resource=index_name)

        run_with_retry(
            attempt,
            self.retry_policy,
            description=f"check index {index_name} exists",
            resource=index_name,
        )
        logger.info("Index is visible", index_name=index_name)
        return ProvisioningResult(physical_resource_id=index_physical_id(index_name))
