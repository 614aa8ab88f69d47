"""Permission gate for CAPA endpoints.

Authentication is handled upstream; the caller's profile id arrives in the
X-User-Id header and is resolved against the user directory.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from capa_tracker.core.schemas_auth import Permission, UserLevel, UserProfile
from capa_tracker.db.users import get_user_by_id

logger = logging.getLogger(__name__)


def has_permission(user: Optional[UserProfile], permission: Union[Permission, str]) -> bool:
    """Administrators hold every permission; others hold what they were granted."""
    if user is None:
        return False
    if user.level == UserLevel.ADMINISTRATOR:
        return True
    wanted = permission.value if isinstance(permission, Permission) else permission
    return wanted in (user.permissions or [])


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[UserProfile]:
    """Resolve the calling user, or None when absent or unknown."""
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        logger.debug(f"Malformed X-User-Id header: {x_user_id}")
        return None
    return await get_user_by_id(user_id)


async def require_user(
    user: Optional[UserProfile] = Depends(get_current_user),
) -> UserProfile:
    """Require an identified user. Raises 401 otherwise."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


class PermissionChecker:
    """Dependency class requiring a specific permission."""

    def __init__(self, permission: Permission):
        self.permission = permission

    async def __call__(self, user: UserProfile = Depends(require_user)) -> UserProfile:
        if not has_permission(user, self.permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission '{self.permission.value}' required",
            )
        return user


require_manage_capa = PermissionChecker(Permission.MANAGE_CAPA)
require_manage_incidents = PermissionChecker(Permission.MANAGE_INCIDENTS)
