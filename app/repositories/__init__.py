"""
Persistence layer.

get_repositories() picks the backing store once per process:
in-memory when USE_MOCK_DB is set, Firestore otherwise.
"""

import logging
from typing import Optional

from app.core.settings import settings
from app.repositories.base import (
    AlertCriteria,
    AlertRepository,
    NotificationRepository,
    Repositories,
    UserRepository,
)

logger = logging.getLogger(__name__)

_repositories: Optional[Repositories] = None


def get_repositories() -> Repositories:
    global _repositories
    if _repositories is None:
        if settings.USE_MOCK_DB:
            from app.repositories.memory import create_memory_repositories
            _repositories = create_memory_repositories()
            logger.info("[STORE] USING IN-MEMORY DATABASE")
        else:
            from app.config.firebase import get_db
            from app.repositories.firestore import create_firestore_repositories
            _repositories = create_firestore_repositories(get_db())
            logger.info("[STORE] USING FIRESTORE DATABASE")
    return _repositories


def reset_repositories() -> None:
    """Drop the cached store (tests, seed script)."""
    global _repositories
    _repositories = None


__all__ = [
    "AlertCriteria",
    "AlertRepository",
    "NotificationRepository",
    "Repositories",
    "UserRepository",
    "get_repositories",
    "reset_repositories",
]
