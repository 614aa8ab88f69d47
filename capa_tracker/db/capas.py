"""Database operations for CAPA records."""

from typing import Any, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from capa_tracker.core.capa_errors import DuplicateFolioError
from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.core.schemas_capa import CapaRecord
from capa_tracker.db import users as users_db
from capa_tracker.db.supabase_client import get_supabase as get_client

CAPAS_TABLE = "capas"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


def _serialize(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert enums, UUIDs and dates to column values."""
    row: dict[str, Any] = {}
    for field, value in fields.items():
        if value is None:
            row[field] = None
        elif hasattr(value, "value"):
            row[field] = value.value
        elif isinstance(value, UUID):
            row[field] = str(value)
        elif hasattr(value, "isoformat"):
            row[field] = value.isoformat()
        else:
            row[field] = value
    return row


# ============================================================================
# CAPA CRUD
# ============================================================================


async def list_capas() -> list[CapaRecord]:
    """List all CAPA records in creation order."""
    client = get_client()
    result = (
        client.table(CAPAS_TABLE)
        .select("*")
        .order("creation_date")
        .order("folio")
        .execute()
    )
    return [CapaRecord(**row) for row in result.data or []]


async def get_capa(capa_id: UUID) -> Optional[CapaRecord]:
    """Get a CAPA record by ID."""
    client = get_client()
    result = client.table(CAPAS_TABLE).select("*").eq("id", str(capa_id)).execute()
    if result.data:
        return CapaRecord(**result.data[0])
    return None


async def create_capa(fields: dict[str, Any]) -> CapaRecord:
    """
    Insert a CAPA record. The table assigns the id.

    Raises:
        DuplicateFolioError: If the folio collides with the unique constraint
        ValueError: If the insert returned no row
    """
    client = get_client()
    try:
        result = client.table(CAPAS_TABLE).insert(_serialize(fields)).execute()
    except APIError as e:
        if e.code == UNIQUE_VIOLATION:
            raise DuplicateFolioError(fields.get("folio", "")) from e
        raise
    if not result.data:
        raise ValueError("Failed to create CAPA record: no data returned")
    return CapaRecord(**result.data[0])


async def update_capa(capa_id: UUID, fields: dict[str, Any]) -> Optional[CapaRecord]:
    """Apply a partial update. Returns None if the record is gone."""
    client = get_client()
    result = (
        client.table(CAPAS_TABLE)
        .update(_serialize(fields))
        .eq("id", str(capa_id))
        .execute()
    )
    if not result.data:
        return None
    return CapaRecord(**result.data[0])


async def delete_capa(capa_id: UUID) -> bool:
    """Delete a CAPA record permanently."""
    client = get_client()
    result = client.table(CAPAS_TABLE).delete().eq("id", str(capa_id)).execute()
    return len(result.data or []) > 0


# ============================================================================
# Store adapter
# ============================================================================


class SupabaseCapaStore:
    """CapaStore backed by the Supabase capas and profiles tables."""

    async def list_capas(self) -> list[CapaRecord]:
        return await list_capas()

    async def get_capa(self, capa_id: UUID) -> Optional[CapaRecord]:
        return await get_capa(capa_id)

    async def create_capa(self, fields: dict[str, Any]) -> CapaRecord:
        return await create_capa(fields)

    async def update_capa(self, capa_id: UUID, fields: dict[str, Any]) -> Optional[CapaRecord]:
        return await update_capa(capa_id, fields)

    async def delete_capa(self, capa_id: UUID) -> bool:
        return await delete_capa(capa_id)

    async def list_users(self) -> list[UserProfile]:
        return await users_db.list_users()
