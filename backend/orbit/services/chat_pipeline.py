"""Chat Pipeline — one user utterance in, executed action outcomes out.

Invariants:
    - Order: image check -> snapshot -> prompt -> provider -> plan validation ->
      execution -> fact extraction
    - Any failure before execution aborts with zero side effects
    - Empty provider output is an error here (an action plan was required)
    - Fact extraction is best effort and never changes the returned result

Design Decisions:
    - Collaborators injected, pipeline holds no per-request state beyond locals
    - Image is validated before any IO so a bad upload never costs a provider call
"""

import logging
from dataclasses import dataclass, field

from orbit.core.actions import ActionOutcome
from orbit.core.domain_types import OwnerId
from orbit.core.errors import ErrorContext
from orbit.core.prompt_assembler import PromptLimits, build_action_prompt
from orbit.core.repository_protocols import SnapshotProvider
from orbit.core.validate_image import DEFAULT_MAX_IMAGE_BYTES, validate_image
from orbit.core.validate_plan import PlanLimits, validate_plan
from orbit.infrastructure.completion_client import StructuredCompletionClient
from orbit.schemas.provider import ActionPlanPayload
from orbit.services.action_executor import ActionExecutor
from orbit.services.fact_extractor import FactExtractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageUpload:
    filename: str | None
    data: bytes


@dataclass(frozen=True)
class ChatResult:
    summary_message: str
    actions: list[ActionOutcome] = field(default_factory=list)


class ChatPipeline:
    def __init__(
        self,
        client: StructuredCompletionClient,
        snapshots: SnapshotProvider,
        executor: ActionExecutor,
        facts: FactExtractor | None = None,
        plan_limits: PlanLimits = PlanLimits(),
        prompt_limits: PromptLimits = PromptLimits(),
        image_max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    ):
        self.client = client
        self.snapshots = snapshots
        self.executor = executor
        self.facts = facts
        self.plan_limits = plan_limits
        self.prompt_limits = prompt_limits
        self.image_max_bytes = image_max_bytes

    async def submit_utterance(
        self, owner_id: OwnerId, text: str, image: ImageUpload | None = None,
    ) -> ChatResult:
        validated_image = None
        if image is not None:
            validated_image = validate_image(
                image.filename, image.data, self.image_max_bytes,
            )

        snapshot = await self.snapshots.get_snapshot(owner_id)
        prompt = build_action_prompt(
            snapshot, text, self.prompt_limits, has_image=validated_image is not None,
        )
        context = ErrorContext(owner_id=str(owner_id), operation="submit_utterance")
        completion = await self.client.complete(
            prompt, ActionPlanPayload, image=validated_image, context=context,
        )
        payload = completion.unwrap("action plan", context)

        plan = validate_plan(payload, owner_id, snapshot, self.plan_limits)
        outcomes = await self.executor.execute(plan)
        logger.info(
            f"Executed {sum(o.succeeded for o in outcomes)}/{len(outcomes)} actions",
            extra={"owner_id": str(owner_id)},
        )

        if self.facts is not None:
            await self.facts.extract_facts(
                owner_id, text, plan.summary_message, snapshot.facts,
            )
        return ChatResult(summary_message=plan.summary_message, actions=outcomes)
