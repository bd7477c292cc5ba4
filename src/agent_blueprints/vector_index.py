"""
Vector index layout shared by the knowledge base construct and the
index provisioner.

The field names are the ones Bedrock knowledge bases write to and read
from; the vector dimension must match the embedding model.
"""

from enum import Enum
from typing import Any

DEFAULT_INDEX_NAME = "agent-blueprint-kb-default-index"

METADATA_FIELD = "AMAZON_BEDROCK_METADATA"
TEXT_FIELD = "AMAZON_BEDROCK_TEXT_CHUNK"
VECTOR_FIELD = "bedrock-knowledge-base-default-vector"


class EmbeddingModel(Enum):
    """Embedding models supported for knowledge bases, with their vector size."""

    TITAN_EMBED_TEXT_V1 = ("amazon.titan-embed-text-v1", 1536)
    TITAN_EMBED_TEXT_V2 = ("amazon.titan-embed-text-v2:0", 1024)
    COHERE_EMBED_ENGLISH_V3 = ("cohere.embed-english-v3", 1024)
    COHERE_EMBED_MULTILINGUAL_V3 = ("cohere.embed-multilingual-v3", 1024)

    @property
    def model_id(self) -> str:
        return self.value[0]

    @property
    def dimension(self) -> int:
        return self.value[1]


def build_index_configuration(dimension: int = EmbeddingModel.TITAN_EMBED_TEXT_V1.dimension) -> dict[str, Any]:
    """
    Build the index settings and mappings for a knowledge base vector index.

    Args:
        dimension: Vector size produced by the embedding model

    Returns:
        Request body for an OpenSearch create-index call
    """
    return {
        "mappings": {
            "properties": {
                "id": {
                    "type": "text",
                    "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
                },
                METADATA_FIELD: {"type": "text", "index": False},
                TEXT_FIELD: {"type": "text"},
                VECTOR_FIELD: {
                    "type": "knn_vector",
                    "dimension": dimension,
                    "method": {
                        "engine": "faiss",
                        "space_type": "l2",
                        "name": "hnsw",
                    },
                },
            }
        },
        "settings": {
            "index": {
                "number_of_shards": 2,
                "knn.algo_param": {"ef_search": 512},
                "knn": True,
            }
        },
    }


DEFAULT_INDEX_CONFIGURATION = build_index_configuration()
