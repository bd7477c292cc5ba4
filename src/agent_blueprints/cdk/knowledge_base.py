"""
Bedrock knowledge base backed by an OpenSearch Serverless vector index.
"""

from enum import Enum

import structlog
from aws_cdk import aws_bedrock as bedrock
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3 as s3
from constructs import Construct

from agent_blueprints.cdk.opensearch import OpenSearchServerlessCollection
from agent_blueprints.cdk.provisioner import ProvisionerResource, provisioner_role
from agent_blueprints.config import DeploymentContext
from agent_blueprints.errors import ConfigurationError
from agent_blueprints.vector_index import (
    DEFAULT_INDEX_NAME,
    METADATA_FIELD,
    TEXT_FIELD,
    VECTOR_FIELD,
    EmbeddingModel,
    build_index_configuration,
)

logger = structlog.get_logger(__name__)

SKIP_KB_CREATION_CONTEXT_KEY = "skipKBCreation"

CHUNK_MAX_TOKENS = 1024
CHUNK_OVERLAP_PERCENTAGE = 20


class StorageType(str, Enum):
    OPENSEARCH_SERVERLESS = "OPENSEARCH_SERVERLESS"
    PINECONE = "PINECONE"
    RDS = "RDS"


def kb_creation_skipped(scope: Construct) -> bool:
    """True when the app was synthesized with ``-c skipKBCreation=true``."""
    value = scope.node.try_get_context(SKIP_KB_CREATION_CONTEXT_KEY)
    return str(value).lower() == "true"


class AgentKnowledgeBase(Construct):
    """
    A knowledge base, its vector store and (later) one S3 data source.

    Creation order:

    1. Knowledge base role (embedding model + collection access)
    2. Collection, security policies and vector index
    3. Index existence check, so Bedrock's validation sees the index
    4. The knowledge base itself

    The data source is added by ``create_and_sync_data_source`` once the
    owning blueprint has uploaded the documents.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        kb_name: str,
        agent_instruction: str,
        context: DeploymentContext,
        asset_files: dict[str, bytes] | None = None,
        embedding_model: EmbeddingModel = EmbeddingModel.TITAN_EMBED_TEXT_V1,
        storage_type: StorageType = StorageType.OPENSEARCH_SERVERLESS,
        index_name: str = DEFAULT_INDEX_NAME,
        description: str | None = None,
    ) -> None:
        super().__init__(scope, construct_id)

        if not kb_name:
            raise ConfigurationError("Knowledge base name is required")
        if storage_type != StorageType.OPENSEARCH_SERVERLESS:
            raise ConfigurationError(f"Unsupported storage configuration type: {storage_type.value}")

        self.kb_name = kb_name
        self.agent_instruction = agent_instruction
        self.context = context
        self.asset_files = dict(asset_files or {})
        self.embedding_model = embedding_model
        self.index_name = index_name
        self.enabled = not kb_creation_skipped(self)
        self.knowledge_base: bedrock.CfnKnowledgeBase | None = None
        self.data_source: bedrock.CfnDataSource | None = None
        self.sync: ProvisionerResource | None = None

        if not self.enabled:
            logger.info("Knowledge base creation skipped", kb_name=kb_name)
            return

        self.role = iam.Role(
            self,
            "Role",
            assumed_by=iam.ServicePrincipal(
                "bedrock.amazonaws.com",
                conditions={"StringEquals": {"aws:SourceAccount": context.account}},
            ),
            description=f"Role for knowledge base {kb_name}",
        )
        self.role.add_to_policy(
            iam.PolicyStatement(
                sid="AllowKBToInvokeEmbedding",
                effect=iam.Effect.ALLOW,
                actions=["bedrock:InvokeModel"],
                resources=[context.foundation_model_arn(embedding_model.model_id)],
            )
        )

        validation_role = provisioner_role(
            self,
            "IndexValidationRole",
            [
                iam.PolicyStatement(
                    sid="AllowIndexValidation",
                    effect=iam.Effect.ALLOW,
                    actions=["aoss:APIAccessAll"],
                    resources=[context.collection_arn()],
                ),
            ],
        )

        self.vector_store = OpenSearchServerlessCollection(
            self,
            "VectorStore",
            collection_name=kb_name,
            context=context,
            access_roles=[self.role, validation_role],
            index_name=index_name,
            index_configuration=build_index_configuration(embedding_model.dimension),
        )
        self.role.add_to_policy(
            iam.PolicyStatement(
                sid="AllowKBToAccessCollection",
                effect=iam.Effect.ALLOW,
                actions=["aoss:APIAccessAll"],
                resources=[self.vector_store.collection_arn],
            )
        )

        self.index_validation = ProvisionerResource(
            self,
            "IndexValidation",
            handler="index_validation_handler",
            role=validation_role,
            resource_type="Custom::IndexExistenceCheck",
            properties={
                "indexName": index_name,
                "collectionEndpoint": self.vector_store.collection_endpoint,
            },
        )
        self.index_validation.node.add_dependency(self.vector_store.index)

        self.knowledge_base = bedrock.CfnKnowledgeBase(
            self,
            "KnowledgeBase",
            name=kb_name,
            description=description or agent_instruction,
            role_arn=self.role.role_arn,
            knowledge_base_configuration=bedrock.CfnKnowledgeBase.KnowledgeBaseConfigurationProperty(
                type="VECTOR",
                vector_knowledge_base_configuration=bedrock.CfnKnowledgeBase.VectorKnowledgeBaseConfigurationProperty(
                    embedding_model_arn=context.foundation_model_arn(embedding_model.model_id),
                ),
            ),
            storage_configuration=bedrock.CfnKnowledgeBase.StorageConfigurationProperty(
                type=storage_type.value,
                opensearch_serverless_configuration=bedrock.CfnKnowledgeBase.OpenSearchServerlessConfigurationProperty(
                    collection_arn=self.vector_store.collection_arn,
                    vector_index_name=index_name,
                    field_mapping=bedrock.CfnKnowledgeBase.OpenSearchServerlessFieldMappingProperty(
                        metadata_field=METADATA_FIELD,
                        text_field=TEXT_FIELD,
                        vector_field=VECTOR_FIELD,
                    ),
                ),
            ),
        )
        self.knowledge_base.node.add_dependency(self.index_validation)
        self.knowledge_base.node.add_dependency(self.role)

        self.knowledge_base_id = self.knowledge_base.attr_knowledge_base_id
        self.knowledge_base_arn = self.knowledge_base.attr_knowledge_base_arn

    def create_and_sync_data_source(self, bucket: s3.IBucket, prefix: str) -> bedrock.CfnDataSource:
        """
        Create the S3 data source for ``prefix`` and start ingesting it.

        Args:
            bucket: Bucket the documents were deployed to
            prefix: Key prefix holding this knowledge base's documents

        Returns:
            The data source resource
        """
        if self.knowledge_base is None:
            raise ConfigurationError(f"Knowledge base {self.kb_name} was not created")
        if self.data_source is not None:
            raise ConfigurationError(f"Knowledge base {self.kb_name} already has a data source")

        self.data_source = bedrock.CfnDataSource(
            self,
            "DataSource",
            name=f"{self.kb_name}-DataSource",
            knowledge_base_id=self.knowledge_base_id,
            data_deletion_policy="RETAIN",
            data_source_configuration=bedrock.CfnDataSource.DataSourceConfigurationProperty(
                type="S3",
                s3_configuration=bedrock.CfnDataSource.S3DataSourceConfigurationProperty(
                    bucket_arn=bucket.bucket_arn,
                    inclusion_prefixes=[f"{prefix}/"],
                ),
            ),
            vector_ingestion_configuration=bedrock.CfnDataSource.VectorIngestionConfigurationProperty(
                chunking_configuration=bedrock.CfnDataSource.ChunkingConfigurationProperty(
                    chunking_strategy="FIXED_SIZE",
                    fixed_size_chunking_configuration=bedrock.CfnDataSource.FixedSizeChunkingConfigurationProperty(
                        max_tokens=CHUNK_MAX_TOKENS,
                        overlap_percentage=CHUNK_OVERLAP_PERCENTAGE,
                    ),
                ),
            ),
        )

        kb_arn = self.context.knowledge_base_arn("*")
        sync_role = provisioner_role(
            self,
            "DataSyncRole",
            [
                iam.PolicyStatement(
                    sid="AllowDataSourceSync",
                    effect=iam.Effect.ALLOW,
                    actions=[
                        "bedrock:StartIngestionJob",
                        "bedrock:GetDataSource",
                        "bedrock:UpdateDataSource",
                        "bedrock:DeleteDataSource",
                        "bedrock:DeleteKnowledgeBase",
                    ],
                    resources=[kb_arn],
                ),
            ],
        )

        self.sync = ProvisionerResource(
            self,
            "DataSync",
            handler="data_source_sync_handler",
            role=sync_role,
            resource_type="Custom::DataSourceSync",
            properties={
                "knowledgeBaseId": self.knowledge_base_id,
                "dataSourceId": self.data_source.attr_data_source_id,
            },
        )
        # Ingestion reads the bucket with the knowledge base role's policy
        self.sync.node.add_dependency(self.role)

        logger.debug("Data source defined", kb_name=self.kb_name, prefix=prefix)
        return self.data_source

    def grant_document_read(self, bucket: s3.IBucket, prefix: str) -> None:
        """Let the knowledge base read its documents from the bucket."""
        if self.enabled:
            bucket.grant_read(self.role, f"{prefix}/*")
