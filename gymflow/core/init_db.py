import logging

from gymflow.core.database import db_manager

# Регистрация моделей в Base.metadata
import gymflow.staff.models  # noqa: F401
import gymflow.members.models  # noqa: F401

logger = logging.getLogger(__name__)


async def init_database():
    """Создание таблиц (партиальные уникальные индексы бронирований включены)"""
    logger.info("Initializing database schema")
    await db_manager.create_tables()
