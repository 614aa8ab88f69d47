"""API endpoints for the user directory."""

from fastapi import APIRouter, Depends, HTTPException

from capa_tracker.core.logging import get_logger
from capa_tracker.core.permissions import require_user
from capa_tracker.core.schemas_auth import UserProfile, UserPublic
from capa_tracker.db import users as users_db

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserPublic])
async def list_users(user: UserProfile = Depends(require_user)) -> list[UserPublic]:
    """List users that can be assigned as responsible for a CAPA."""
    try:
        users = await users_db.list_users()
    except Exception as e:
        logger.error(f"Error listing users: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return [UserPublic(id=u.id, full_name=u.full_name, email=u.email) for u in users]
