"""
Lambda entry points for the custom-resource provisioners.

Handler strings used by the CDK constructs:
    agent_blueprints.provisioning.handlers.index_operation_handler
    agent_blueprints.provisioning.handlers.index_validation_handler
    agent_blueprints.provisioning.handlers.data_source_sync_handler
"""

import logging

import structlog

from agent_blueprints.config import get_settings
from agent_blueprints.provisioning.data_source_sync import DataSourceSyncProvisioner
from agent_blueprints.provisioning.index_operation import IndexOperationProvisioner
from agent_blueprints.provisioning.index_validation import IndexExistenceValidator

# Configure logging for CloudWatch
logging.getLogger().setLevel(get_settings().log_level)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

_provisioners = {}


def _get(provisioner_cls):
    # Reused across warm invocations
    if provisioner_cls not in _provisioners:
        _provisioners[provisioner_cls] = provisioner_cls()
    return _provisioners[provisioner_cls]


def index_operation_handler(event, context):
    """Create, update or delete an OpenSearch Serverless vector index."""
    return _get(IndexOperationProvisioner).handle(event)


def index_validation_handler(event, context):
    """Block until the vector index is visible to signed requests."""
    return _get(IndexExistenceValidator).handle(event)


def data_source_sync_handler(event, context):
    """Start knowledge base ingestion, or remove the data source on delete."""
    return _get(DataSourceSyncProvisioner).handle(event)
