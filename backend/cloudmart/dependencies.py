"""
CloudMart Functions — Request Dependencies
===========================================

What:  FastAPI dependencies that hand configuration and storage to routes.
How:   Settings live on app.state (set by create_app). get_dispatcher builds a
       StorageDispatcher over the Azure backends for each request and
       short-circuits with ConfigurationError when no connection string is
       configured, before any storage call.

Tests replace get_dispatcher through app.dependency_overrides.
"""

import logging

from fastapi import Depends, Request

from cloudmart.config import Settings
from cloudmart.exceptions import ConfigurationError
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.storage.azure_backends import AzureStorageBackends

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(settings: Settings = Depends(get_settings)) -> StorageDispatcher:
    """
    Per-request storage dispatcher.

    Raises:
        ConfigurationError: AzureWebJobsStorage is not set (→ 500)
    """
    if not settings.storage_configured:
        logger.error("AzureWebJobsStorage connection string is not set.")
        raise ConfigurationError(context={"setting": "AzureWebJobsStorage"})

    backends = AzureStorageBackends(settings.storage_connection_string)
    return StorageDispatcher(
        files=backends.files,
        queues=backends.queues,
        blobs=backends.blobs,
        tables=backends.tables,
    )
