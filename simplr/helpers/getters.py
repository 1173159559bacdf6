from simplr.core.config import settings


def isDebugMode() -> bool:
    return settings.MODE.lower() == "debug"


def isTestMode() -> bool:
    return settings.MODE.lower() == "test"


def isGuestUser(user_id: str) -> bool:
    """Guest identities are not durable accounts and carry a fixed prefix."""
    return bool(user_id) and user_id.startswith(settings.GUEST_USER_PREFIX)
