"""
Shared API dependencies
"""

from typing import Optional

from fastapi import Header

DEFAULT_USER_ID = "api"


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Acting user, forwarded by the surrounding application in X-User-Id"""
    return x_user_id or DEFAULT_USER_ID
