"""LLM-drafted text suggestions for CAPA plans and incident summaries.

Advisory only: results never touch record state, and provider failures come
back as a typed SuggestionResult instead of an exception.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from anthropic import AsyncAnthropic
from pydantic import BaseModel

from capa_tracker.core.capa_errors import ProviderError
from capa_tracker.core.config import Settings
from capa_tracker.core.logging import get_logger, log_with_context

logger = get_logger(__name__)


DISABLED_MESSAGE = (
    "AI suggestions are disabled. Set the ANTHROPIC_API_KEY environment variable to enable them."
)
EMPTY_INPUT_MESSAGE = "Please enter the problem description first."
PLAN_FALLBACK_MESSAGE = "Could not generate suggestions. Please try again later."
SUMMARY_FALLBACK_MESSAGE = "Could not generate the incident summary. Please try again later."

PLAN_PROMPT_TEMPLATE = """Perform a root cause analysis of the following problem reported in an industrial or office environment. Use the "5 Whys" method to dig into the causes. Then suggest an Action Plan with at least 3 concrete actions (corrective or preventive). Format the answer clearly using markdown.

---
REPORTED PROBLEM:
"{problem_text}"
---

ROOT CAUSE ANALYSIS AND SUGGESTED ACTION PLAN:"""

INCIDENT_SUMMARY_PROMPT_TEMPLATE = """Analyze the following workplace incident report and provide a brief, professional summary suitable for a management overview. Focus on the key events, the possible causes and the immediate actions taken.
---
INCIDENT REPORT:
{description}
---
PROFESSIONAL SUMMARY:"""


# ============================================================================
# Configuration
# ============================================================================


@dataclass(frozen=True)
class SamplingConfig:
    """Sampling parameters for a single suggestion request."""
    temperature: float
    top_p: Optional[float] = None
    top_k: Optional[int] = None

    def as_kwargs(self) -> dict[str, Any]:
        params: dict[str, Any] = {"temperature": self.temperature}
        if self.top_p is not None:
            params["top_p"] = self.top_p
        if self.top_k is not None:
            params["top_k"] = self.top_k
        return params


@dataclass(frozen=True)
class SuggestionSettings:
    """Explicit configuration injected into SuggestionService."""
    api_key: Optional[str]
    model: str = "claude-haiku-4-5-20251001"
    max_tokens: int = 1024
    plan_sampling: SamplingConfig = field(
        default_factory=lambda: SamplingConfig(temperature=0.7, top_k=40)
    )
    summary_sampling: SamplingConfig = field(
        default_factory=lambda: SamplingConfig(temperature=0.5, top_k=32)
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "SuggestionSettings":
        return cls(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.SUGGESTION_MODEL,
            max_tokens=settings.SUGGESTION_MAX_TOKENS,
            plan_sampling=SamplingConfig(
                temperature=settings.PLAN_SUGGESTION_TEMPERATURE,
                top_p=settings.PLAN_SUGGESTION_TOP_P,
                top_k=settings.PLAN_SUGGESTION_TOP_K,
            ),
            summary_sampling=SamplingConfig(
                temperature=settings.INCIDENT_SUMMARY_TEMPERATURE,
                top_p=settings.INCIDENT_SUMMARY_TOP_P,
                top_k=settings.INCIDENT_SUMMARY_TOP_K,
            ),
        )


# ============================================================================
# Result type
# ============================================================================


class SuggestionFailure(str, Enum):
    """Why a suggestion could not be produced."""
    DISABLED = "disabled"
    EMPTY_INPUT = "empty_input"
    PROVIDER_ERROR = "provider_error"
    EMPTY_RESPONSE = "empty_response"


class SuggestionResult(BaseModel):
    """Generated text, or a failure reason plus user-facing fallback text."""
    ok: bool
    text: str
    failure: Optional[SuggestionFailure] = None

    @classmethod
    def success(cls, text: str) -> "SuggestionResult":
        return cls(ok=True, text=text)

    @classmethod
    def failed(cls, failure: SuggestionFailure, text: str) -> "SuggestionResult":
        return cls(ok=False, text=text, failure=failure)


# ============================================================================
# Service
# ============================================================================


class SuggestionService:
    """Drafts plan text and summaries through the Anthropic Messages API."""

    def __init__(self, config: SuggestionSettings, client: Optional[AsyncAnthropic] = None):
        self.config = config
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.config.api_key)

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            # Single attempt per call
            self._client = AsyncAnthropic(api_key=self.config.api_key, max_retries=0)
        return self._client

    async def request_plan_suggestion(self, problem_text: str) -> SuggestionResult:
        """
        Draft a root-cause analysis and action plan for a reported problem.

        Args:
            problem_text: Problem / finding description

        Returns:
            SuggestionResult with the draft, or a failure and fallback text
        """
        return await self._suggest(
            operation="plan_suggestion",
            text=problem_text,
            prompt_template=PLAN_PROMPT_TEMPLATE,
            placeholder="problem_text",
            sampling=self.config.plan_sampling,
            fallback=PLAN_FALLBACK_MESSAGE,
        )

    async def request_incident_summary(self, description: str) -> SuggestionResult:
        """
        Draft a management-facing summary of an incident report.

        Args:
            description: Incident report text

        Returns:
            SuggestionResult with the summary, or a failure and fallback text
        """
        return await self._suggest(
            operation="incident_summary",
            text=description,
            prompt_template=INCIDENT_SUMMARY_PROMPT_TEMPLATE,
            placeholder="description",
            sampling=self.config.summary_sampling,
            fallback=SUMMARY_FALLBACK_MESSAGE,
        )

    async def _suggest(
        self,
        operation: str,
        text: str,
        prompt_template: str,
        placeholder: str,
        sampling: SamplingConfig,
        fallback: str,
    ) -> SuggestionResult:
        if not self.enabled:
            return SuggestionResult.failed(SuggestionFailure.DISABLED, DISABLED_MESSAGE)

        if not (text or "").strip():
            return SuggestionResult.failed(SuggestionFailure.EMPTY_INPUT, EMPTY_INPUT_MESSAGE)

        prompt = prompt_template.format(**{placeholder: text.strip()})

        try:
            generated = await self._call_provider(prompt, sampling)
        except ProviderError as e:
            log_with_context(
                logger, logging.ERROR, "Suggestion request failed",
                operation=operation, model=self.config.model, error=str(e.__cause__ or e),
            )
            return SuggestionResult.failed(SuggestionFailure.PROVIDER_ERROR, fallback)

        if not generated:
            log_with_context(
                logger, logging.WARNING, "Suggestion request returned no text",
                operation=operation, model=self.config.model,
            )
            return SuggestionResult.failed(SuggestionFailure.EMPTY_RESPONSE, fallback)

        return SuggestionResult.success(generated)

    async def _call_provider(self, prompt: str, sampling: SamplingConfig) -> str:
        """Issue exactly one request. Any failure is raised as ProviderError."""
        try:
            response = await self._get_client().messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                messages=[{"role": "user", "content": prompt}],
                **sampling.as_kwargs(),
            )
            # Non-text first blocks (e.g. tool_use) count as no text
            block = response.content[0] if response.content else None
            text = getattr(block, "text", None) or ""
        except Exception as e:
            raise ProviderError(f"Provider request failed: {e}") from e

        return text.strip()
