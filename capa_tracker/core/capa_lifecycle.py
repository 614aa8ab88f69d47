"""
CAPA Lifecycle Manager

Enforces record creation, content edits and status transitions before
delegating persistence to a CapaStore.

Status flow:
  OPEN ⇄ IN_PROGRESS → CLOSED | CANCELLED   (OPEN may also close or cancel directly)

CLOSED and CANCELLED are terminal.
"""

import logging
import re
from datetime import date
from typing import Any, Callable, Optional, Protocol, Union
from uuid import UUID

from capa_tracker.core.capa_errors import InvalidTransitionError, NotFoundError, ValidationError
from capa_tracker.core.logging import get_logger, log_with_context
from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.core.schemas_capa import (
    CapaContentUpdate,
    CapaCreate,
    CapaDueNotice,
    CapaRecord,
    CapaStatus,
)

logger = get_logger(__name__)


# ============================================================================
# Transition table
# ============================================================================

ALLOWED_TRANSITIONS: dict[CapaStatus, frozenset[CapaStatus]] = {
    CapaStatus.OPEN: frozenset(
        {CapaStatus.IN_PROGRESS, CapaStatus.CLOSED, CapaStatus.CANCELLED}
    ),
    CapaStatus.IN_PROGRESS: frozenset(
        {CapaStatus.OPEN, CapaStatus.CLOSED, CapaStatus.CANCELLED}
    ),
    CapaStatus.CLOSED: frozenset(),
    CapaStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)

REQUIRED_TEXT_FIELDS = ("source", "description", "plan")


def can_transition(current: CapaStatus, target: CapaStatus) -> bool:
    """Check whether current -> target is a lifecycle edge."""
    return target in ALLOWED_TRANSITIONS[current]


def is_terminal(status: CapaStatus) -> bool:
    return status in TERMINAL_STATUSES


# ============================================================================
# Folio assignment
# ============================================================================


def next_folio(existing_folios: list[str], prefix: str = "CAPA") -> str:
    """
    Compute the next sequential folio.

    Uses one more than the highest sequence among existing records, not the
    record count, so deleting an older record cannot cause a collision.

    Args:
        existing_folios: Folios of all records currently in the store
        prefix: Folio prefix (e.g. "CAPA")

    Returns:
        Folio such as "CAPA-0007"
    """
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = 0
    for folio in existing_folios:
        match = pattern.match(folio or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:04d}"


# ============================================================================
# Store interface
# ============================================================================


class CapaStore(Protocol):
    """Record store consumed by the lifecycle manager."""

    async def list_capas(self) -> list[CapaRecord]: ...

    async def get_capa(self, capa_id: UUID) -> Optional[CapaRecord]: ...

    async def create_capa(self, fields: dict[str, Any]) -> CapaRecord: ...

    async def update_capa(self, capa_id: UUID, fields: dict[str, Any]) -> Optional[CapaRecord]: ...

    async def delete_capa(self, capa_id: UUID) -> bool: ...

    async def list_users(self) -> list[UserProfile]: ...


# ============================================================================
# Lifecycle manager
# ============================================================================


def _clean_text(value: Optional[str], field: str) -> str:
    """Strip a required text field, raising if nothing is left."""
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"'{field}' is required and cannot be empty", field=field)
    return cleaned


def _coerce_status(value: Union[CapaStatus, str]) -> CapaStatus:
    try:
        return CapaStatus(value)
    except ValueError as e:
        allowed = ", ".join(s.value for s in CapaStatus)
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {allowed}", field="status"
        ) from e


class CapaLifecycleManager:
    """Validates CAPA operations and forwards them to the record store."""

    def __init__(
        self,
        store: CapaStore,
        folio_prefix: str = "CAPA",
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.folio_prefix = folio_prefix
        self._today = today

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[CapaRecord]:
        """All records in store order."""
        return await self.store.list_capas()

    async def get(self, capa_id: UUID) -> CapaRecord:
        capa = await self.store.get_capa(capa_id)
        if capa is None:
            raise NotFoundError(capa_id)
        return capa

    async def search(self, term: str) -> list[CapaRecord]:
        """Case-insensitive match on folio or description."""
        needle = term.strip().lower()
        if not needle:
            return []
        return [
            c for c in await self.store.list_capas()
            if needle in c.folio.lower() or needle in c.description.lower()
        ]

    async def due_soon_notices(
        self,
        user_id: UUID,
        within_days: int = 7,
    ) -> list[CapaDueNotice]:
        """
        Notices for open records assigned to a user that are due soon.

        Overdue records are included (negative days_remaining).

        Args:
            user_id: Responsible user
            within_days: Window ahead of the commitment date

        Returns:
            Notices ordered by commitment date
        """
        today = self._today()
        notices = []
        for capa in await self.store.list_capas():
            if capa.responsible_user_id != user_id or capa.status != CapaStatus.OPEN:
                continue
            days_remaining = (capa.commitment_date - today).days
            if days_remaining <= within_days:
                notices.append(CapaDueNotice(
                    capa_id=capa.id,
                    folio=capa.folio,
                    title=f"CAPA due soon: {capa.folio}",
                    message=f"Commitment date in {days_remaining} days.",
                    days_remaining=days_remaining,
                    commitment_date=capa.commitment_date,
                    creation_date=capa.creation_date,
                ))
        notices.sort(key=lambda n: n.commitment_date)
        return notices

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: CapaCreate) -> CapaRecord:
        """
        Create a new CAPA record in status OPEN.

        Args:
            data: Form input

        Returns:
            The stored record with id, folio and creation_date assigned

        Raises:
            ValidationError: If a required field is missing/empty or the
                responsible user does not exist
            DuplicateFolioError: If a concurrent create took the same folio
        """
        fields: dict[str, Any] = {
            name: _clean_text(getattr(data, name), name) for name in REQUIRED_TEXT_FIELDS
        }
        if data.type is None:
            raise ValidationError("'type' is required", field="type")
        if data.commitment_date is None:
            raise ValidationError("'commitment_date' is required", field="commitment_date")
        if data.responsible_user_id is None:
            raise ValidationError("'responsible_user_id' is required", field="responsible_user_id")
        await self._require_user(data.responsible_user_id)

        # Read-then-insert; the store's unique folio constraint settles races
        existing = await self.store.list_capas()
        folio = next_folio([c.folio for c in existing], self.folio_prefix)

        fields.update({
            "type": data.type,
            "commitment_date": data.commitment_date,
            "responsible_user_id": data.responsible_user_id,
            "folio": folio,
            "status": CapaStatus.OPEN,
            "creation_date": self._today(),
            "close_date": None,
            "verification_notes": None,
        })
        capa = await self.store.create_capa(fields)

        log_with_context(
            logger, logging.INFO, "CAPA created",
            capa_id=str(capa.id), folio=capa.folio, type=capa.type.value,
        )
        return capa

    async def update_content(self, capa_id: UUID, data: CapaContentUpdate) -> CapaRecord:
        """
        Edit content fields. Status, folio and creation_date never change here.

        Raises:
            NotFoundError: If the record does not exist
            ValidationError: If a supplied field is blank or null, or the new
                responsible user does not exist
        """
        current = await self.get(capa_id)

        update_data: dict[str, Any] = {}
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None:
                raise ValidationError(f"'{field}' cannot be cleared", field=field)
            if field in REQUIRED_TEXT_FIELDS:
                value = _clean_text(value, field)
            update_data[field] = value

        if "responsible_user_id" in update_data:
            await self._require_user(update_data["responsible_user_id"])

        if not update_data:
            return current

        capa = await self.store.update_capa(capa_id, update_data)
        if capa is None:
            raise NotFoundError(capa_id)

        log_with_context(
            logger, logging.INFO, "CAPA content updated",
            capa_id=str(capa_id), folio=current.folio, updated_fields=sorted(update_data),
        )
        return capa

    async def transition_status(
        self,
        capa_id: UUID,
        new_status: Union[CapaStatus, str],
        verification_notes: Optional[str] = None,
    ) -> CapaRecord:
        """
        Move a record along a lifecycle edge.

        Closing requires verification notes and stamps close_date; every other
        target clears both.

        Raises:
            ValidationError: Unknown status or missing notes on close
            InvalidTransitionError: Not an allowed edge (including out of a
                terminal status)
            NotFoundError: If the record does not exist
        """
        target = _coerce_status(new_status)
        current = await self.get(capa_id)

        if not can_transition(current.status, target):
            raise InvalidTransitionError(current.status, target)

        if target == CapaStatus.CLOSED:
            notes = (verification_notes or "").strip()
            if not notes:
                raise ValidationError(
                    "Verification notes are required to close a CAPA",
                    field="verification_notes",
                )
            update_data: dict[str, Any] = {
                "status": target,
                "close_date": self._today(),
                "verification_notes": notes,
            }
        else:
            update_data = {
                "status": target,
                "close_date": None,
                "verification_notes": None,
            }

        capa = await self.store.update_capa(capa_id, update_data)
        if capa is None:
            raise NotFoundError(capa_id)

        log_with_context(
            logger, logging.INFO, "CAPA status changed",
            capa_id=str(capa_id), folio=current.folio,
            status_change=f"{current.status.value} -> {target.value}",
        )
        return capa

    async def delete(self, capa_id: UUID) -> None:
        """Permanently remove a record."""
        current = await self.get(capa_id)
        if not await self.store.delete_capa(capa_id):
            raise NotFoundError(capa_id)

        log_with_context(
            logger, logging.INFO, "CAPA deleted",
            capa_id=str(capa_id), folio=current.folio,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_user(self, user_id: UUID) -> UserProfile:
        for user in await self.store.list_users():
            if user.id == user_id:
                return user
        raise ValidationError(
            f"Responsible user {user_id} does not exist", field="responsible_user_id"
        )
