"""
Trigger knowledge base ingestion and clean up the data source on delete.
"""

import boto3
import structlog
from botocore.exceptions import ClientError

from agent_blueprints.config import Settings, get_settings
from agent_blueprints.errors import (
    AlreadyAbsent,
    PermanentServiceRejection,
    ProvisioningFailure,
    TransientServiceState,
)
from agent_blueprints.provisioning.base import Provisioner
from agent_blueprints.provisioning.models import ProvisioningRequest, ProvisioningResult
from agent_blueprints.provisioning.retry import RetryPolicy, run_with_retry

logger = structlog.get_logger(__name__)

SYNC_FAILED_ID = "datasync_failed"

NOT_FOUND_CODES = ("ResourceNotFoundException",)
TRANSIENT_CODES = ("ConflictException", "ThrottlingException", "ServiceQuotaExceededException")


def _classify_client_error(error: ClientError, resource: str, *, not_found_is_transient: bool):
    code = error.response.get("Error", {}).get("Code", "")
    message = error.response.get("Error", {}).get("Message", str(error))
    if code in NOT_FOUND_CODES:
        if not_found_is_transient:
            return TransientServiceState(message, resource=resource, response=error.response)
        return AlreadyAbsent(message, resource=resource, response=error.response)
    if code in TRANSIENT_CODES:
        return TransientServiceState(message, resource=resource, response=error.response)
    return PermanentServiceRejection(message, resource=resource, response=error.response.get("Error"))


class DataSourceSyncProvisioner(Provisioner):
    """
    Starts an ingestion job for a knowledge base data source.

    Ingestion is best effort: when the job cannot be started the stack
    still deploys and the failure is reported through Reason. On delete
    the data source is removed before its parent knowledge base.
    """

    name = "data-source-sync"

    def __init__(
        self,
        settings: Settings | None = None,
        client=None,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the sync provisioner."""
        self.settings = settings or get_settings()
        self._client = client
        self.retry_policy = retry_policy or RetryPolicy.for_sync(self.settings.provisioner)

    @property
    def client(self):
        """Lazy initialization of the Bedrock Agent client."""
        if self._client is None:
            self._client = boto3.client("bedrock-agent", region_name=self.settings.aws.region)
        return self._client

    def on_create(self, request: ProvisioningRequest) -> ProvisioningResult:
        knowledge_base_id = request.require("knowledgeBaseId")
        data_source_id = request.require("dataSourceId")
        try:
            job_id = self._start_ingestion(knowledge_base_id, data_source_id)
        except (PermanentServiceRejection, ProvisioningFailure) as e:
            logger.error("Failed to start ingestion job", error=str(e))
            return ProvisioningResult(
                physical_resource_id=SYNC_FAILED_ID,
                reason=f"Failed to start ingestion job: {e}",
            )
        return ProvisioningResult(physical_resource_id=f"datasync_{job_id}")

    def on_update(self, request: ProvisioningRequest) -> ProvisioningResult:
        # Keep the original id so CloudFormation does not replace (and delete) the data source
        physical_id = self.previous_id(request, SYNC_FAILED_ID)
        knowledge_base_id = request.require("knowledgeBaseId")
        data_source_id = request.require("dataSourceId")
        try:
            self._start_ingestion(knowledge_base_id, data_source_id)
        except (PermanentServiceRejection, ProvisioningFailure) as e:
            logger.error("Failed to start ingestion job", error=str(e))
            return ProvisioningResult(
                physical_resource_id=physical_id,
                reason=f"Failed to start ingestion job: {e}",
            )
        return ProvisioningResult(physical_resource_id=physical_id)

    def on_delete(self, request: ProvisioningRequest) -> ProvisioningResult:
        knowledge_base_id = request.require("knowledgeBaseId")
        data_source_id = request.require("dataSourceId")

        try:
            self._delete_data_source(knowledge_base_id, data_source_id)
        except AlreadyAbsent:
            logger.info("Data source already absent", data_source_id=data_source_id)

        try:
            self._delete_knowledge_base(knowledge_base_id)
        except AlreadyAbsent:
            logger.info("Knowledge base already absent", knowledge_base_id=knowledge_base_id)

        return ProvisioningResult(physical_resource_id=self.previous_id(request, SYNC_FAILED_ID))

    def _start_ingestion(self, knowledge_base_id: str, data_source_id: str) -> str:
        resource = f"data source {data_source_id}"

        def attempt() -> str:
            response = self._call(
                resource,
                self.client.start_ingestion_job,
                not_found_is_transient=True,
                knowledgeBaseId=knowledge_base_id,
                dataSourceId=data_source_id,
            )
            return response["ingestionJob"]["ingestionJobId"]

        job_id = run_with_retry(
            attempt,
            self.retry_policy,
            description=f"start ingestion for {resource}",
            resource=resource,
        )
        logger.info(
            "Ingestion job started",
            knowledge_base_id=knowledge_base_id,
            data_source_id=data_source_id,
            ingestion_job_id=job_id,
        )
        return job_id

    def _delete_data_source(self, knowledge_base_id: str, data_source_id: str) -> None:
        resource = f"data source {data_source_id}"
        response = self._retrying(
            f"get {resource}",
            resource,
            self.client.get_data_source,
            knowledgeBaseId=knowledge_base_id,
            dataSourceId=data_source_id,
        )
        logger.info(
            "Deleting data source",
            data_source_id=data_source_id,
            status=response.get("dataSource", {}).get("status"),
        )
        self._retrying(
            f"delete {resource}",
            resource,
            self.client.delete_data_source,
            knowledgeBaseId=knowledge_base_id,
            dataSourceId=data_source_id,
        )

    def _delete_knowledge_base(self, knowledge_base_id: str) -> None:
        # Data source deletion is asynchronous; the parent reports a conflict until it finishes
        resource = f"knowledge base {knowledge_base_id}"
        self._retrying(
            f"delete {resource}",
            resource,
            self.client.delete_knowledge_base,
            knowledgeBaseId=knowledge_base_id,
        )
        logger.info("Knowledge base deleted", knowledge_base_id=knowledge_base_id)

    def _retrying(self, description: str, resource: str, method, **kwargs):
        """Call a client method, retrying transient states; AlreadyAbsent is raised at once."""
        return run_with_retry(
            lambda: self._call(resource, method, **kwargs),
            self.retry_policy,
            description=description,
            resource=resource,
        )

    @staticmethod
    def _call(resource: str, method, *, not_found_is_transient: bool = False, **kwargs):
        try:
            return method(**kwargs)
        except ClientError as e:
            raise _classify_client_error(
                e, resource, not_found_is_transient=not_found_is_transient
            ) from e
