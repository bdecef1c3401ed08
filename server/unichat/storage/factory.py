from __future__ import annotations
import logging

from unichat.config import Settings
from unichat.db.session import create_engine
from unichat.storage.base import ChatStore
from unichat.storage.memory import MemoryStore
from unichat.storage.sql import SqlStore

logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> ChatStore:
    if settings.storage_mode == "memory":
        logger.info("Storage mode: in-memory")
        return MemoryStore()
    logger.info("Storage mode: SQL (%s)", settings.database_url.split("://", 1)[0])
    return SqlStore(create_engine(settings.database_url))
