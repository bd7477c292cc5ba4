"""
Create, update and delete a vector index in an OpenSearch Serverless collection.
"""

import json
from typing import Any

import structlog
from opensearchpy.exceptions import RequestError, TransportError

from agent_blueprints.config import Settings, get_settings
from agent_blueprints.errors import AlreadyAbsent, ProvisioningFailure
from agent_blueprints.provisioning.base import Provisioner
from agent_blueprints.provisioning.models import ProvisioningRequest, ProvisioningResult
from agent_blueprints.provisioning.opensearch import (
    ClientFactory,
    classify_error,
    create_opensearch_client,
    error_types,
)
from agent_blueprints.provisioning.retry import RetryPolicy, run_with_retry
from agent_blueprints.vector_index import DEFAULT_INDEX_CONFIGURATION

logger = structlog.get_logger(__name__)


def index_physical_id(index_name: str) -> str:
    """Physical resource id for an index; stable across replays."""
    return f"osindex_{index_name}"


def parse_index_configuration(value: Any) -> dict[str, Any]:
    """
    Resolve the indexConfiguration property.

    CloudFormation stringifies nested scalars, so the construct passes the
    configuration as a JSON document; a plain object is accepted too.
    """
    if value is None or value == "":
        return DEFAULT_INDEX_CONFIGURATION
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as e:
        raise ProvisioningFailure(f"indexConfiguration is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ProvisioningFailure("indexConfiguration must be a JSON object")
    return parsed


class IndexOperationProvisioner(Provisioner):
    """
    Manages one vector index.

    Create is retried while the collection's access policy propagates.
    OpenSearch has no in-place index modification, so Update deletes and
    recreates the index under the same name.
    """

    name = "index-operation"

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the index provisioner."""
        self.settings = settings or get_settings()
        self._client_factory = client_factory or (
            lambda endpoint: create_opensearch_client(endpoint, self.settings)
        )
        self.retry_policy = retry_policy or RetryPolicy.for_index(self.settings.provisioner)

    def on_create(self, request: ProvisioningRequest) -> ProvisioningResult:
        index_name = request.require("indexName")
        client = self._client_factory(request.require("collectionEndpoint"))
        body = parse_index_configuration(request.resource_properties.get("indexConfiguration"))

        self._create_index(client, index_name, body)
        return ProvisioningResult(physical_resource_id=index_physical_id(index_name))

    def on_update(self, request: ProvisioningRequest) -> ProvisioningResult:
        index_name = request.require("indexName")
        old_properties = request.old_resource_properties or {}
        old_index_name = old_properties.get("indexName", index_name)
        client = self._client_factory(request.require("collectionEndpoint"))
        body = parse_index_configuration(request.resource_properties.get("indexConfiguration"))

        # Not atomic: a failure after the delete leaves the index absent
        # until the next Create or Update recreates it.
        try:
            self._delete_index(client, old_index_name)
        except AlreadyAbsent:
            logger.info("Index absent before update, recreating", index_name=old_index_name)
        self._create_index(client, index_name, body)
        return ProvisioningResult(physical_resource_id=index_physical_id(index_name))

    def on_delete(self, request: ProvisioningRequest) -> ProvisioningResult:
        index_name = request.require("indexName")
        client = self._client_factory(request.require("collectionEndpoint"))

        try:
            self._delete_index(client, index_name)
        except AlreadyAbsent:
            logger.info("Index already absent", index_name=index_name)
        return ProvisioningResult(
            physical_resource_id=self.previous_id(request, index_physical_id(index_name))
        )

    def _create_index(self, client, index_name: str, body: dict[str, Any]) -> None:
        def attempt() -> None:
            try:
                client.indices.create(index=index_name, body=body)
            except RequestError as e:
                if "resource_already_exists_exception" in error_types(e):
                    logger.info("Index already exists", index_name=index_name)
                    return
                raise classify_error(e, index_name) from e
            except TransportError as e:
                raise classify_error(e, index_name) from e
            logger.info("Vector index created", index_name=index_name)

        run_with_retry(
            attempt,
            self.retry_policy,
            description=f"create index {index_name}",
            resource=index_name,
        )

    def _delete_index(self, client, index_name: str) -> None:
        def attempt() -> None:
            try:
                client.indices.delete(index=index_name)
            except TransportError as e:
                raise classify_error(e, index_name) from e
            logger.info("Vector index deleted", index_name=index_name)

        run_with_retry(
            attempt,
            self.retry_policy,
            description=f"delete index {index_name}",
            resource=index_name,
        )
