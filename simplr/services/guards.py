"""
Shared guards for services that write membership-style records.
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.core.exceptions import ConflictError, PermissionDeniedError, RemoteStoreError
from simplr.logging import get_logger

logger = get_logger(__name__)


async def commit_or_raise(db: AsyncSession, description: str) -> None:
    """
    Commit, turning database failures into domain errors.

    Raises:
        ConflictError: On a unique or foreign key violation
        RemoteStoreError: On any other database failure
    """
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Failed to {description}", error=str(e))
        raise ConflictError(f"Failed to {description}: conflicting record") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to {description}", error=str(e))
        raise RemoteStoreError(f"Failed to {description}") from e


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise PermissionDeniedError(message)
