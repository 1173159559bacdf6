from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from simplr.core.config import settings
from simplr.helpers.getters import isDebugMode
import logging
logger = logging.getLogger(__name__)

if isDebugMode():
    logger.info("Using EXTERNAL database URL for debug mode")
    DATABASE_URL = settings.POSTGRES_EXTERNAL_URL
else:
    logger.info("Using INTERNAL database URL")
    DATABASE_URL = settings.POSTGRES_INTERNAL_URL

engine_internal = create_async_engine(DATABASE_URL, future=True, echo=False, pool_pre_ping=True)
SessionAsync = async_sessionmaker(engine_internal, class_=AsyncSession, expire_on_commit=False)
