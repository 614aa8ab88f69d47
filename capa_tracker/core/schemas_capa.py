"""Pydantic schemas for CAPA (corrective and preventive action) records."""

from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================


class CapaType(str, Enum):
    """Kind of action."""
    CORRECTIVE = "corrective"   # Fix an existing nonconformity
    PREVENTIVE = "preventive"   # Prevent a potential one


class CapaStatus(str, Enum):
    """Status of a CAPA record in its lifecycle."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    CANCELLED = "cancelled"


CAPA_TYPE_LABELS: dict[CapaType, str] = {
    CapaType.CORRECTIVE: "Corrective",
    CapaType.PREVENTIVE: "Preventive",
}

CAPA_STATUS_LABELS: dict[CapaStatus, str] = {
    CapaStatus.OPEN: "Open",
    CapaStatus.IN_PROGRESS: "In Progress",
    CapaStatus.CLOSED: "Closed",
    CapaStatus.CANCELLED: "Cancelled",
}


# ============================================================================
# Commands
# ============================================================================


class CapaCreate(BaseModel):
    """Form input for a new CAPA record.

    Defaults mirror an empty form; the lifecycle manager rejects blanks.
    """
    source: str = ""
    description: str = ""
    plan: str = ""
    type: Optional[CapaType] = None
    commitment_date: Optional[date] = None
    responsible_user_id: Optional[UUID] = None


class CapaContentUpdate(BaseModel):
    """Edit of the content field group. Unset fields are left untouched; null is rejected."""
    source: Optional[str] = None
    description: Optional[str] = None
    plan: Optional[str] = None
    type: Optional[CapaType] = None
    commitment_date: Optional[date] = None
    responsible_user_id: Optional[UUID] = None


class CapaStatusChange(BaseModel):
    """Request to move a record to another status."""
    status: CapaStatus
    verification_notes: Optional[str] = None


# ============================================================================
# Records
# ============================================================================


class CapaRecord(BaseModel):
    """Full CAPA record as held by the record store."""
    id: UUID
    folio: str
    source: str
    description: str
    plan: str
    type: CapaType
    status: CapaStatus
    commitment_date: date
    close_date: Optional[date] = None
    responsible_user_id: UUID
    creation_date: date
    verification_notes: Optional[str] = None

    class Config:
        from_attributes = True


class CapaListResponse(BaseModel):
    """Response for listing CAPA records."""
    capas: list[CapaRecord]
    total: int
    by_status: dict[str, int]


class CapaDueNotice(BaseModel):
    """Notice for an open record whose commitment date is near or past."""
    capa_id: UUID
    folio: str
    title: str
    message: str
    days_remaining: int
    commitment_date: date
    creation_date: date


# ============================================================================
# Suggestions
# ============================================================================


class PlanSuggestionRequest(BaseModel):
    """Request body for an action-plan draft."""
    problem_text: str = Field("", description="Problem / finding description")


class IncidentSummaryRequest(BaseModel):
    """Request body for a management-facing incident summary."""
    description: str = Field("", description="Incident report text")
