"""Data store backends for calendar and staffing data"""

import logging

from .. import config
from .base import RemoteStore, Row, StoreError
from .sql import SqlStore
from .supabase import SupabaseStore

logger = logging.getLogger(__name__)


def create_store() -> RemoteStore:
    """Build the store selected by STORE_BACKEND"""
    if config.STORE_BACKEND == "supabase":
        if not config.SUPABASE_URL or not config.SUPABASE_KEY:
            raise RuntimeError("STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_KEY")
        logger.info("📡 Using Supabase store")
        return SupabaseStore(config.SUPABASE_URL, config.SUPABASE_KEY, timeout=config.STORE_TIMEOUT)

    from ..database import SessionLocal

    logger.info("🗄️ Using SQL store")
    return SqlStore(SessionLocal)


__all__ = ["RemoteStore", "Row", "StoreError", "SqlStore", "SupabaseStore", "create_store"]
