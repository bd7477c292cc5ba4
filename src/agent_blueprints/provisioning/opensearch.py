"""
Signed OpenSearch Serverless client and error classification.
"""

from typing import Any, Callable
from urllib.parse import urlparse

import boto3
import structlog
from opensearchpy import AWSV4SignerAuth, OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import (
    AuthorizationException,
    ConnectionError as OpenSearchConnectionError,
    NotFoundError,
    TransportError,
)

from agent_blueprints.config import Settings, get_settings
from agent_blueprints.errors import (
    AlreadyAbsent,
    PermanentServiceRejection,
    ProvisioningError,
    TransientServiceState,
)

logger = structlog.get_logger(__name__)

AOSS_SERVICE = "aoss"

ClientFactory = Callable[[str], Any]


def create_opensearch_client(endpoint: str, settings: Settings | None = None) -> OpenSearch:
    """
    Create a SigV4-signed client for an OpenSearch Serverless collection.

    Args:
        endpoint: Collection endpoint, with or without the https:// scheme
        settings: Settings providing region and client tuning

    Returns:
        OpenSearch client bound to the collection
    """
    settings = settings or get_settings()
    host = urlparse(endpoint).hostname or endpoint
    credentials = boto3.Session().get_credentials()
    auth = AWSV4SignerAuth(credentials, settings.aws.region, AOSS_SERVICE)

    logger.debug("Creating OpenSearch client", host=host, region=settings.aws.region)

    return OpenSearch(
        hosts=[{"host": host, "port": 443}],
        http_auth=auth,
        use_ssl=True,
        verify_certs=True,
        connection_class=RequestsHttpConnection,
        timeout=settings.provisioner.client_timeout_seconds,
        max_retries=settings.provisioner.client_max_retries,
        retry_on_timeout=True,
        pool_maxsize=20,
    )


def error_types(error: TransportError) -> set[str]:
    """Collect the error type and root-cause types reported by OpenSearch."""
    types = set()
    if isinstance(error.error, str):
        types.add(error.error)
    info = error.info if isinstance(error.info, dict) else {}
    body = info.get("error")
    if isinstance(body, dict):
        if body.get("type"):
            types.add(body["type"])
        for cause in body.get("root_cause") or []:
            if isinstance(cause, dict) and cause.get("type"):
                types.add(cause["type"])
    return types


def classify_error(error: TransportError, resource: str) -> ProvisioningError:
    """
    Map an opensearch-py error onto the provisioning error taxonomy.

    403 and connection failures are transient: a freshly created data
    access policy takes a while to reach the collection. A 404 for a
    missing index means the index is absent. Everything else is a
    permanent rejection.
    """
    if isinstance(error, NotFoundError) and "index_not_found_exception" in error_types(error):
        return AlreadyAbsent("Index not found", resource=resource, response=error.info)
    if isinstance(error, (AuthorizationException, NotFoundError)):
        return TransientServiceState(
            "Collection not ready for index operations",
            resource=resource,
            response=error.info,
        )
    if isinstance(error, OpenSearchConnectionError):
        return TransientServiceState(f"Collection unreachable: {error}", resource=resource)
    return PermanentServiceRejection(
        f"OpenSearch rejected the request ({error.status_code})",
        resource=resource,
        response=error.info,
    )
