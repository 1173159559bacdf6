from dataclasses import dataclass
from typing import Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from simplr.db.session import SessionAsync
from simplr.helpers.getters import isDebugMode, isGuestUser
from simplr.core.config import settings
from simplr.core.permissions import PermissionContext
from simplr.core.security import decode_access_token
from simplr.models.team import Team
from simplr.services.task_store import SQLAlchemyTaskStore
from simplr.services.team_service import build_permission_context

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token",
    description="Bearer token issued by the auth provider"
)


@dataclass(frozen=True)
class CurrentUser:
    id: str

    @property
    def is_guest(self) -> bool:
        return isGuestUser(self.id)


async def get_db():
    async with SessionAsync() as session:
        yield session


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = decode_access_token(token)
    if user_id is None:
        raise credentials_exception
    return CurrentUser(id=user_id)


def redis_client() -> aioredis.Redis:
    return aioredis.from_url(
        settings.CELERY_BROKER_URL_EXTERNAL if isDebugMode() else settings.CELERY_BROKER_URL
    )


def get_redis_factory():
    """For responses that outlive the request scope (event streams)"""
    return redis_client


async def get_redis():
    redis = redis_client()
    try:
        yield redis
    finally:
        await redis.aclose()


def get_task_store(db: AsyncSession = Depends(get_db)) -> SQLAlchemyTaskStore:
    return SQLAlchemyTaskStore(db)


# ==================== Permission Dependencies ====================

async def get_team_context(
    team_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> Tuple[Team, PermissionContext]:
    """
    Load the team and the caller's permission context.

    Non-members get a context without a role rather than an error, so
    callers decide which checks apply.

    Raises:
        NotFoundError: If the team does not exist
    """
    return await build_permission_context(db, team_id, current_user.id)
