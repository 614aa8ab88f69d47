"""API router for v1 endpoints."""

from fastapi import APIRouter

from capa_tracker.api import capas, suggestions, users

router = APIRouter()

# CAPA records: CRUD, status transitions, export, notices
router.include_router(capas.router)

# AI-drafted plans and incident summaries
router.include_router(suggestions.router)

# User directory for responsible-party pickers
router.include_router(users.router)
