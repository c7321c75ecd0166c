"""Request Dependencies — identity and per-request service wiring for routes.

Invariants:
    - Owner identity comes from the X-User-Id header, else settings.dev_user_id
    - One SqlRepository per request (bound to that request's DB session)
    - The completion client is process-wide (created lazily, shared across requests)
    - Conflict enrichment shares the request session; an aborted check rolls it
      back before the next action commits

Design Decisions:
    - Development identity header stands in for authentication
    - Services built per request from the shared client + request repository,
      so no mutable state crosses requests
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.config import get_settings
from orbit.core.domain_types import OwnerId
from orbit.core.prompt_assembler import PromptLimits
from orbit.core.routines import RoutinePolicy
from orbit.core.validate_plan import PlanLimits
from orbit.infrastructure.completion_client import StructuredCompletionClient
from orbit.infrastructure.database import get_db
from orbit.infrastructure.repositories import SqlRepository
from orbit.services.action_executor import ActionExecutor
from orbit.services.chat_pipeline import ChatPipeline
from orbit.services.fact_extractor import FactExtractor
from orbit.services.routine_analyzer import RoutineAnalyzer

_completion_client: StructuredCompletionClient | None = None


def get_completion_client() -> StructuredCompletionClient:
    global _completion_client
    if _completion_client is None:
        settings = get_settings()
        _completion_client = StructuredCompletionClient(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
            temperature=settings.anthropic_temperature,
            max_retries=settings.anthropic_max_retries,
            base_delay_ms=settings.anthropic_base_delay_ms,
            jitter=settings.anthropic_backoff_jitter,
            timeout_seconds=settings.anthropic_timeout_seconds,
        )
    return _completion_client


def get_owner_id(x_user_id: str | None = Header(None)) -> OwnerId:
    raw = x_user_id or get_settings().dev_user_id
    try:
        return OwnerId(UUID(raw))
    except ValueError:
        raise HTTPException(
            status.HTTP_401_UNAUTHORIZED, detail="Invalid user identity",
        )


def get_repository(db: AsyncSession = Depends(get_db)) -> SqlRepository:
    return SqlRepository(db)


def get_routine_analyzer(
    repo: SqlRepository = Depends(get_repository),
    client: StructuredCompletionClient = Depends(get_completion_client),
) -> RoutineAnalyzer:
    settings = get_settings()
    return RoutineAnalyzer(
        client, repo, repo, repo.clock,
        RoutinePolicy(
            min_history_days=settings.routine_min_history_days,
            min_logs_per_habit=settings.routine_min_logs_per_habit,
            analysis_window_days=settings.routine_analysis_window_days,
        ),
    )


def get_chat_pipeline(
    repo: SqlRepository = Depends(get_repository),
    client: StructuredCompletionClient = Depends(get_completion_client),
    analyzer: RoutineAnalyzer = Depends(get_routine_analyzer),
) -> ChatPipeline:
    settings = get_settings()
    executor = ActionExecutor(
        repo,
        conflict_check=analyzer.assess_conflict,
        enrichment_timeout=settings.enrichment_timeout_seconds,
        on_enrichment_abort=repo.discard_pending,
    )
    return ChatPipeline(
        client,
        repo,
        executor,
        facts=FactExtractor(client, repo),
        plan_limits=PlanLimits(
            max_actions=settings.plan_max_actions,
            max_destructive_actions=settings.plan_max_destructive_actions,
        ),
        prompt_limits=PromptLimits(
            max_habits=settings.prompt_max_habits,
            max_tags=settings.prompt_max_tags,
            max_facts=settings.prompt_max_facts,
        ),
        image_max_bytes=settings.image_max_bytes,
    )
