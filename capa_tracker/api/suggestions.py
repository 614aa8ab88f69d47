"""API endpoints for AI-drafted plan suggestions and incident summaries."""

from functools import lru_cache

from fastapi import APIRouter, Depends

from capa_tracker.core.config import get_settings
from capa_tracker.core.permissions import require_manage_capa, require_manage_incidents
from capa_tracker.core.schemas_auth import UserProfile
from capa_tracker.core.schemas_capa import IncidentSummaryRequest, PlanSuggestionRequest
from capa_tracker.core.suggestions import SuggestionResult, SuggestionService, SuggestionSettings

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@lru_cache(maxsize=1)
def get_suggestion_service() -> SuggestionService:
    """Suggestion service configured from the environment."""
    return SuggestionService(SuggestionSettings.from_settings(get_settings()))


@router.post("/plan", response_model=SuggestionResult)
async def suggest_plan(
    body: PlanSuggestionRequest,
    service: SuggestionService = Depends(get_suggestion_service),
    user: UserProfile = Depends(require_manage_capa),
) -> SuggestionResult:
    """
    Draft an action plan for a problem description.

    Always 200: failures come back as ok=false with fallback text.
    """
    return await service.request_plan_suggestion(body.problem_text)


@router.post("/incident-summary", response_model=SuggestionResult)
async def suggest_incident_summary(
    body: IncidentSummaryRequest,
    service: SuggestionService = Depends(get_suggestion_service),
    user: UserProfile = Depends(require_manage_incidents),
) -> SuggestionResult:
    """Draft a management-facing summary of an incident report."""
    return await service.request_incident_summary(body.description)
