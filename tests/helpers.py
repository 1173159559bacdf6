"""
Shared helpers for tests that need more than the fixtures provide.
"""

from simplr.core.security import create_access_token


def make_auth_headers(user_id: str) -> dict:
    """Bearer headers for an arbitrary user id (guest ids included)"""
    token = create_access_token(data={"sub": user_id})
    return {"Authorization": f"Bearer {token}"}
