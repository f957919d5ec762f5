"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Request

from taskboard.config import Settings
from taskboard.store import (
    InMemoryUserProjectStore,
    SqlUserProjectStore,
    UserProjectStore,
)

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> UserProjectStore:
    """Create the store the settings ask for."""
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory user store")
        return InMemoryUserProjectStore()
    logger.info("Using SQL user store")
    return SqlUserProjectStore(settings.database_url)


def get_store(request: Request) -> UserProjectStore:
    """Return the store handle the app was started with."""
    return request.app.state.store
