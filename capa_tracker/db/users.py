"""Database operations for the user directory (read-only)."""

from typing import Optional
from uuid import UUID

from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.db.supabase_client import get_supabase as get_client


async def get_user_by_id(user_id: UUID) -> Optional[UserProfile]:
    """Get a user profile by ID."""
    client = get_client()
    result = client.table("profiles").select("*").eq("id", str(user_id)).execute()
    if result.data:
        return UserProfile(**result.data[0])
    return None


async def list_users() -> list[UserProfile]:
    """List all user profiles, ordered by name."""
    client = get_client()
    result = client.table("profiles").select("*").order("full_name").execute()
    return [UserProfile(**row) for row in result.data or []]
