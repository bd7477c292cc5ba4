"""
Tests for the knowledge base and vector store constructs.
"""

import json

import pytest
from aws_cdk import App, Environment, Stack
from aws_cdk import aws_s3 as s3
from aws_cdk.assertions import Match, Template

from agent_blueprints.cdk.knowledge_base import AgentKnowledgeBase, StorageType
from agent_blueprints.cdk.opensearch import aoss_name
from agent_blueprints.errors import ConfigurationError
from agent_blueprints.vector_index import EmbeddingModel

ACCOUNT = "123456789012"
REGION = "us-west-2"


def knowledge_base(stack, context, **kwargs):
    return AgentKnowledgeBase(
        stack,
        "MenuKB",
        kb_name="restaurant-menu",
        agent_instruction="Answer questions about the menu.",
        context=context,
        asset_files={"menu.txt": b"Soup of the day"},
        **kwargs,
    )


class TestAossName:
    """Tests for collection and policy names."""

    def test_sanitised(self):
        """Test names are lowercased and invalid characters replaced."""
        assert aoss_name("My_KB Name") == "my-kb-name"

    def test_length_with_suffix(self):
        """Test names are truncated to fit the suffix."""
        name = aoss_name("a" * 40, "access")

        assert len(name) == 32
        assert name.endswith("-access")

    def test_leading_digit(self):
        """Test names start with a letter."""
        assert aoss_name("123kb")[0].isalpha()


class TestAgentKnowledgeBase:
    """Tests for AgentKnowledgeBase."""

    def test_knowledge_base_resources(self, stack, context):
        """Test the knowledge base is backed by an OpenSearch Serverless index."""
        knowledge_base(stack, context)

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Bedrock::KnowledgeBase", {
            "Name": "restaurant-menu",
            "KnowledgeBaseConfiguration": {
                "Type": "VECTOR",
                "VectorKnowledgeBaseConfiguration": {
                    "EmbeddingModelArn": f"arn:aws:bedrock:{REGION}::foundation-model/amazon.titan-embed-text-v1",
                },
            },
            "StorageConfiguration": {
                "Type": "OPENSEARCH_SERVERLESS",
                "OpensearchServerlessConfiguration": Match.object_like({
                    "VectorIndexName": "agent-blueprint-kb-default-index",
                    "FieldMapping": {
                        "MetadataField": "AMAZON_BEDROCK_METADATA",
                        "TextField": "AMAZON_BEDROCK_TEXT_CHUNK",
                        "VectorField": "bedrock-knowledge-base-default-vector",
                    },
                }),
            },
        })
        template.has_resource_properties("AWS::OpenSearchServerless::Collection", {
            "Name": "restaurant-menu",
            "Type": "VECTORSEARCH",
        })
        template.resource_count_is("AWS::OpenSearchServerless::SecurityPolicy", 2)
        template.resource_count_is("AWS::OpenSearchServerless::AccessPolicy", 1)
        template.resource_count_is("Custom::OpenSearchIndex", 1)
        template.resource_count_is("Custom::IndexExistenceCheck", 1)
        template.resource_count_is("Custom::DataSourceSync", 0)

    def test_knowledge_base_waits_for_index_check(self, stack, context):
        """Test the knowledge base is created after the index is visible."""
        knowledge_base(stack, context)

        template = Template.from_stack(stack)
        kb = next(iter(template.find_resources("AWS::Bedrock::KnowledgeBase").values()))
        check_ids = template.find_resources("Custom::IndexExistenceCheck").keys()
        assert set(check_ids) <= set(kb["DependsOn"])

    def test_index_dimension_follows_embedding_model(self, stack, context):
        """Test the index configuration uses the embedding dimension."""
        knowledge_base(stack, context, embedding_model=EmbeddingModel.COHERE_EMBED_ENGLISH_V3)

        template = Template.from_stack(stack)
        index = next(iter(template.find_resources("Custom::OpenSearchIndex").values()))
        config = json.loads(index["Properties"]["indexConfiguration"])
        vector = config["mappings"]["properties"]["bedrock-knowledge-base-default-vector"]
        assert vector["dimension"] == 1024

    def test_data_source_and_sync(self, stack, context):
        """Test the data source and its sync resource."""
        kb = knowledge_base(stack, context)
        bucket = s3.Bucket(stack, "Docs")
        kb.create_and_sync_data_source(bucket, "restaurant-menu")

        template = Template.from_stack(stack)
        template.has_resource_properties("AWS::Bedrock::DataSource", {
            "Name": "restaurant-menu-DataSource",
            "DataDeletionPolicy": "RETAIN",
            "DataSourceConfiguration": {
                "Type": "S3",
                "S3Configuration": Match.object_like({"InclusionPrefixes": ["restaurant-menu/"]}),
            },
            "VectorIngestionConfiguration": {
                "ChunkingConfiguration": {
                    "ChunkingStrategy": "FIXED_SIZE",
                    "FixedSizeChunkingConfiguration": {"MaxTokens": 1024, "OverlapPercentage": 20},
                },
            },
        })
        template.resource_count_is("Custom::DataSourceSync", 1)

    def test_second_data_source_rejected(self, stack, context):
        """Test a knowledge base has one data source."""
        kb = knowledge_base(stack, context)
        bucket = s3.Bucket(stack, "Docs")
        kb.create_and_sync_data_source(bucket, "restaurant-menu")

        with pytest.raises(ConfigurationError):
            kb.create_and_sync_data_source(bucket, "restaurant-menu")

    def test_unsupported_storage(self, stack, context):
        """Test only OpenSearch Serverless storage is supported."""
        with pytest.raises(ConfigurationError, match="Unsupported storage configuration type"):
            knowledge_base(stack, context, storage_type=StorageType.PINECONE)

    def test_creation_skipped(self, context):
        """Test the skipKBCreation context flag disables the knowledge base."""
        app = App(context={"aws:cdk:bundling-stacks": [], "skipKBCreation": "true"})
        stack = Stack(app, "SkipStack", env=Environment(account=ACCOUNT, region=REGION))

        kb = knowledge_base(stack, context)

        assert not kb.enabled
        template = Template.from_stack(stack)
        template.resource_count_is("AWS::Bedrock::KnowledgeBase", 0)
        template.resource_count_is("AWS::OpenSearchServerless::Collection", 0)
