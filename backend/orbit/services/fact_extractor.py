"""Fact Extractor — best-effort capture of durable personal facts from a chat turn.

Invariants:
    - Never raises for provider or commit failures: the chat turn already succeeded
    - Empty provider output means "no facts", not an error
    - Candidates are trimmed, capped at MAX_FACT_LENGTH, de-duplicated against
      known facts (case-insensitive), and dropped when they look like injected
      instructions
    - Each accepted fact is committed on its own through the commit boundary

Design Decisions:
    - Injection screening is a small marker list: facts are re-fed into future
      prompts (inside <untrusted> markers), so obvious instruction text is refused
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from orbit.core.domain_types import MutationKind, OwnerId
from orbit.core.errors import ErrorContext, OrbitError
from orbit.core.prompt_assembler import build_fact_prompt
from orbit.core.repository_protocols import CommitBoundary, Mutation
from orbit.core.snapshot import FactSummary
from orbit.infrastructure.completion_client import StructuredCompletionClient
from orbit.schemas.provider import ExtractedFactsPayload

logger = logging.getLogger(__name__)

MAX_FACT_LENGTH = 500
INJECTION_MARKERS = ("ignore", "system:", "you must", "instruction:")


@dataclass(frozen=True)
class FactCandidate:
    text: str
    category: str | None = None


def screen_candidates(
    candidates: Sequence[FactCandidate], existing: Sequence[FactSummary],
) -> list[FactCandidate]:
    """Trim, cap, de-duplicate and drop injection-looking candidates."""
    known = {f.text.strip().lower() for f in existing}
    accepted: list[FactCandidate] = []
    for candidate in candidates:
        text = candidate.text.strip()[:MAX_FACT_LENGTH]
        lowered = text.lower()
        if not text or lowered in known:
            continue
        if any(marker in lowered for marker in INJECTION_MARKERS):
            logger.warning("Rejected fact candidate with instruction markers")
            continue
        known.add(lowered)
        category = (candidate.category or "").strip().lower() or None
        accepted.append(FactCandidate(text, category))
    return accepted


class FactExtractor:
    def __init__(self, client: StructuredCompletionClient, commits: CommitBoundary):
        self.client = client
        self.commits = commits

    async def extract_facts(
        self,
        owner_id: OwnerId,
        user_message: str,
        summary_message: str | None,
        existing_facts: Sequence[FactSummary],
    ) -> list[FactCandidate]:
        """Extract, screen and store new facts. Returns the facts that were stored."""
        context = ErrorContext(owner_id=str(owner_id), operation="extract_facts")
        prompt = build_fact_prompt(user_message, summary_message, existing_facts)
        try:
            completion = await self.client.complete(
                prompt, ExtractedFactsPayload, context=context,
            )
        except OrbitError as e:
            logger.warning(
                f"Fact extraction skipped: {e.message}",
                extra={"owner_id": str(owner_id), "error_code": e.code},
            )
            return []
        if not completion.is_ok:
            if completion.reason:
                logger.warning(
                    f"Fact extraction output unusable: {completion.reason}",
                    extra={"owner_id": str(owner_id)},
                )
            return []

        candidates = screen_candidates(
            [FactCandidate(f.fact_text, f.category) for f in completion.value.facts],
            existing_facts,
        )
        stored: list[FactCandidate] = []
        for candidate in candidates:
            try:
                result = await self.commits.commit(Mutation(
                    MutationKind.CREATE_FACT, owner_id,
                    fields={"fact_text": candidate.text, "category": candidate.category},
                ))
            except OrbitError as e:
                logger.warning(
                    f"Storing fact failed: {e.message}",
                    extra={"owner_id": str(owner_id), "error_code": e.code},
                )
                continue
            if result.ok:
                stored.append(candidate)
            else:
                logger.warning(
                    f"Storing fact rejected: {result.error}",
                    extra={"owner_id": str(owner_id)},
                )
        return stored
