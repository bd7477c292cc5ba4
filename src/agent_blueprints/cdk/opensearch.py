"""
OpenSearch Serverless vector collection with a managed index.
"""

import json
import re
from typing import Any

import structlog
from aws_cdk import aws_iam as iam
from aws_cdk import aws_opensearchserverless as aoss
from constructs import Construct

from agent_blueprints.cdk.provisioner import ProvisionerResource, provisioner_role
from agent_blueprints.config import DeploymentContext
from agent_blueprints.vector_index import DEFAULT_INDEX_CONFIGURATION, DEFAULT_INDEX_NAME

logger = structlog.get_logger(__name__)

AOSS_NAME_MAX_LENGTH = 32

COLLECTION_PERMISSIONS = [
    "aoss:DescribeCollectionItems",
    "aoss:CreateCollectionItems",
    "aoss:UpdateCollectionItems",
]
INDEX_PERMISSIONS = [
    "aoss:DescribeIndex",
    "aoss:ReadDocument",
    "aoss:WriteDocument",
    "aoss:CreateIndex",
    "aoss:DeleteIndex",
    "aoss:UpdateIndex",
]


def aoss_name(base: str, suffix: str = "") -> str:
    """
    Derive a valid OpenSearch Serverless resource name.

    Names are lowercase, start with a letter, use only letters, digits and
    hyphens, and are at most 32 characters long.
    """
    cleaned = re.sub(r"[^a-z0-9-]+", "-", base.lower()).strip("-")
    if not cleaned or not cleaned[0].isalpha():
        cleaned = f"kb-{cleaned}".rstrip("-")
    tail = f"-{suffix}" if suffix else ""
    head = cleaned[: AOSS_NAME_MAX_LENGTH - len(tail)].rstrip("-")
    return f"{head}{tail}"


class OpenSearchServerlessCollection(Construct):
    """
    A VECTORSEARCH collection, its security policies and one vector index.

    The index is created by the index-operation provisioner once the
    collection is active. ``access_roles`` are granted data access to the
    collection and its indexes.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        collection_name: str,
        context: DeploymentContext,
        access_roles: list[iam.IRole],
        index_name: str = DEFAULT_INDEX_NAME,
        index_configuration: dict[str, Any] | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.collection_name = aoss_name(collection_name)
        self.index_name = index_name

        # Role for the index provisioner
        self.index_role = provisioner_role(
            self,
            "IndexRole",
            [
                iam.PolicyStatement(
                    sid="AllowIndexOperations",
                    effect=iam.Effect.ALLOW,
                    actions=["aoss:APIAccessAll"],
                    resources=[context.collection_arn()],
                ),
            ],
        )

        collection_resource = [f"collection/{self.collection_name}"]

        self.encryption_policy = aoss.CfnSecurityPolicy(
            self,
            "EncryptionPolicy",
            name=aoss_name(collection_name, "enc"),
            type="encryption",
            policy=json.dumps({
                "Rules": [{"ResourceType": "collection", "Resource": collection_resource}],
                "AWSOwnedKey": True,
            }),
        )

        self.network_policy = aoss.CfnSecurityPolicy(
            self,
            "NetworkPolicy",
            name=aoss_name(collection_name, "net"),
            type="network",
            policy=json.dumps([{
                "Rules": [
                    {"ResourceType": "collection", "Resource": collection_resource},
                    {"ResourceType": "dashboard", "Resource": collection_resource},
                ],
                "AllowFromPublic": True,
            }]),
        )

        principals = [role.role_arn for role in access_roles] + [self.index_role.role_arn]
        self.access_policy = aoss.CfnAccessPolicy(
            self,
            "AccessPolicy",
            name=aoss_name(collection_name, "access"),
            type="data",
            policy=json.dumps([{
                "Rules": [
                    {
                        "ResourceType": "collection",
                        "Resource": collection_resource,
                        "Permission": COLLECTION_PERMISSIONS,
                    },
                    {
                        "ResourceType": "index",
                        "Resource": [f"index/{self.collection_name}/*"],
                        "Permission": INDEX_PERMISSIONS,
                    },
                ],
                "Principal": principals,
            }]),
        )

        self.collection = aoss.CfnCollection(
            self,
            "Collection",
            name=self.collection_name,
            type="VECTORSEARCH",
            description=description or f"Vector store for {collection_name}",
        )
        self.collection.add_dependency(self.encryption_policy)
        self.collection.add_dependency(self.network_policy)
        self.collection.add_dependency(self.access_policy)

        self.collection_arn = self.collection.attr_arn
        self.collection_endpoint = self.collection.attr_collection_endpoint

        self.index = ProvisionerResource(
            self,
            "Index",
            handler="index_operation_handler",
            role=self.index_role,
            resource_type="Custom::OpenSearchIndex",
            properties={
                "indexName": index_name,
                "collectionEndpoint": self.collection_endpoint,
                "indexConfiguration": json.dumps(index_configuration or DEFAULT_INDEX_CONFIGURATION),
            },
        )
        self.index.node.add_dependency(self.collection)

        logger.debug(
            "OpenSearch Serverless collection defined",
            collection_name=self.collection_name,
            index_name=index_name,
        )
