"""Staged, capability-partitioned consensus pipeline."""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from hydravote.config import Settings
from hydravote.engine.consensus import calculate_consensus
from hydravote.engine.context import (
    AdapterFactory,
    DynamicWeights,
    EngineContext,
    ProviderBinding,
    build_context,
)
from hydravote.engine.models import ConsensusOutcome, ModelVote
from hydravote.engine.tiebreaker import (
    TiebreakerTrigger,
    build_tiebreaker_vote,
    merge_with_tiebreaker,
    should_trigger_tiebreaker,
)
from hydravote.engine.votes import build_vote
from hydravote.providers.models import AdapterResult, Capability, ProviderConfig
from hydravote.providers.prompts import (
    build_enhanced_prompt,
    build_market_prompt,
    build_tiebreaker_prompt,
)

if TYPE_CHECKING:
    from hydravote.database.ledger import LedgerWriter

logger = logging.getLogger(__name__)

# Slack on top of the adapter's own timeout before the orchestrator gives up on it
TIMEOUT_GRACE_SECONDS = 1.0


class StageOutcome(BaseModel):
    """Votes and carried-forward state from all stages."""

    votes: List[ModelVote] = Field(default_factory=list)
    best_description: Optional[str] = None
    item_name: Optional[str] = None
    stage_counts: Dict[str, int] = Field(default_factory=dict)
    tiebreaker: Optional[TiebreakerTrigger] = None


class StageOrchestrator:
    """Runs the vision, text and search stages for one request.

    Each stage fans out to its providers concurrently and waits for all of
    them to settle; a provider that fails or times out contributes no vote.
    If the context holds a tiebreaker provider, it is asked once more after
    the search stage when the BUY/SELL split is close.
    """

    def __init__(self, context: EngineContext, grace_seconds: float = TIMEOUT_GRACE_SECONDS):
        """Initialize orchestrator.

        Args:
            context: Request-scoped engine context
            grace_seconds: Extra time allowed beyond each provider's own timeout
        """
        self.context = context
        self.grace_seconds = grace_seconds

    async def _safe_analyze(
        self, binding: ProviderBinding, images: List[bytes], prompt: str
    ) -> Tuple[ProviderBinding, Optional[AdapterResult]]:
        """Call one provider, converting any failure into a None result."""
        config = binding.config
        try:
            result = await asyncio.wait_for(
                binding.adapter.analyze(images, prompt),
                timeout=config.timeout_seconds + self.grace_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{config.name} did not respond within {config.timeout_seconds:.0f}s")
            return binding, None
        except Exception as e:
            logger.warning(f"{config.name} failed: {e}")
            return binding, None

        if result is None or not result.ok:
            logger.info(f"{config.name} returned no usable analysis")
            return binding, None
        return binding, result

    async def _run_stage(
        self, bindings: Sequence[ProviderBinding], images: List[bytes], prompt: str
    ) -> List[Tuple[ProviderBinding, AdapterResult]]:
        """Fan out to every provider in a stage and wait for all of them.

        Returns:
            Successful (binding, result) pairs in completion order
        """
        tasks = [
            asyncio.create_task(self._safe_analyze(binding, images, prompt))
            for binding in bindings
        ]

        settled = []
        for next_done in asyncio.as_completed(tasks):
            binding, result = await next_done
            if result is not None:
                settled.append((binding, result))
        return settled

    def _to_votes(
        self,
        settled: Sequence[Tuple[ProviderBinding, AdapterResult]],
        stage: Capability,
        fallback_item_name: Optional[str],
    ) -> List[ModelVote]:
        votes = []
        for binding, result in settled:
            vote = build_vote(
                binding.config,
                result,
                stage,
                dynamic_weights=self.context.dynamic_weights,
                fallback_item_name=fallback_item_name,
            )
            if vote is not None:
                votes.append(vote)
        return votes

    async def run(self, images: List[bytes], prompt: str) -> StageOutcome:
        """Run all stages.

        Args:
            images: Raw image bytes, sent to vision providers only
            prompt: Caller's prompt

        Returns:
            Stage outcome with every vote cast
        """
        best_description = None
        item_name = None

        # Stage 1: vision
        vision_bindings = self.context.for_stage(Capability.VISION)
        vision_settled = await self._run_stage(vision_bindings, images, prompt)
        for _, result in vision_settled:
            analysis = result.response
            if analysis.item_name and analysis.reasoning:
                item_name = analysis.item_name
                best_description = f"{analysis.item_name}: {analysis.reasoning}"
                break
        vision_votes = self._to_votes(vision_settled, Capability.VISION, None)
        logger.info(
            f"Vision stage: {len(vision_votes)}/{len(vision_bindings)} providers responded"
        )

        # Stage 2: text, after stage 1 has fully settled
        text_bindings = self.context.for_stage(Capability.TEXT)
        text_votes: List[ModelVote] = []
        if text_bindings:
            text_prompt = prompt
            if best_description:
                text_prompt = build_enhanced_prompt(prompt, best_description, item_name)
            text_settled = await self._run_stage(text_bindings, [], text_prompt)
            if item_name is None:
                item_name = next(
                    (r.response.item_name for _, r in text_settled if r.response.item_name), None
                )
            text_votes = self._to_votes(text_settled, Capability.TEXT, item_name)
            logger.info(
                f"Text stage: {len(text_votes)}/{len(text_bindings)} providers responded"
            )

        # Stage 3: search, only once an item has been identified
        search_bindings = self.context.for_stage(Capability.SEARCH)
        search_votes: List[ModelVote] = []
        if item_name and search_bindings:
            market_prompt = build_market_prompt(prompt, item_name)
            search_settled = await self._run_stage(search_bindings, [], market_prompt)
            search_votes = self._to_votes(search_settled, Capability.SEARCH, item_name)
            logger.info(
                f"Search stage: {len(search_votes)}/{len(search_bindings)} providers responded"
            )
        elif search_bindings:
            logger.info("Search stage skipped: no item identified")

        votes = vision_votes + text_votes + search_votes
        stage_counts = {
            Capability.VISION.value: len(vision_votes),
            Capability.TEXT.value: len(text_votes),
            Capability.SEARCH.value: len(search_votes),
        }

        # Stage 4: tiebreaker, only for a close split
        trigger = None
        if self.context.tiebreaker is not None:
            trigger = should_trigger_tiebreaker(votes)
            tiebreaker_vote = None
            if trigger.triggered:
                tiebreaker_vote = await self._run_tiebreaker(prompt, item_name, trigger)
            else:
                logger.info(f"Tiebreaker not needed: {trigger.reason}")
            votes = merge_with_tiebreaker(votes, tiebreaker_vote)
            stage_counts["tiebreaker"] = 0 if tiebreaker_vote is None else 1

        return StageOutcome(
            votes=votes,
            best_description=best_description,
            item_name=item_name,
            stage_counts=stage_counts,
            tiebreaker=trigger,
        )

    async def _run_tiebreaker(
        self, prompt: str, item_name: Optional[str], trigger: TiebreakerTrigger
    ) -> Optional[ModelVote]:
        binding = self.context.tiebreaker
        logger.info(f"Tiebreaker: asking {binding.config.name} ({trigger.reason})")

        settled = await self._run_stage([binding], [], build_tiebreaker_prompt(prompt, item_name))
        if not settled:
            logger.warning(f"Tiebreaker {binding.config.name} produced no vote")
            return None

        _, result = settled[0]
        vote = build_tiebreaker_vote(
            binding.config,
            result,
            dynamic_weights=self.context.dynamic_weights,
            fallback_item_name=item_name,
        )
        if vote is not None:
            logger.info(
                f"Tiebreaker {binding.config.name} decided {vote.decision} "
                f"(weight {vote.weight:.3f})"
            )
        return vote


async def run_consensus(
    images: List[bytes],
    prompt: str,
    provider_configs: Sequence[ProviderConfig],
    dynamic_weights: Optional[DynamicWeights] = None,
    *,
    adapter_factory: Optional[AdapterFactory] = None,
    ledger: Optional["LedgerWriter"] = None,
    settings: Optional[Settings] = None,
    tiebreaker_id: Optional[str] = None,
) -> ConsensusOutcome:
    """Run the full pipeline for one item.

    Provider failures never surface here: with no votes at all the fallback
    consensus is returned.

    Args:
        images: Raw image bytes
        prompt: Caller's prompt
        provider_configs: Provider configurations
        dynamic_weights: Calibrated multipliers, as a DynamicWeightSet or by provider id
        adapter_factory: Builds an adapter from a config. If None, uses create_adapter.
        ledger: If given, votes and consensus are queued for persistence
        settings: Settings passed to the default adapter factory
        tiebreaker_id: Provider held out of the stages to settle close votes

    Returns:
        Consensus outcome with the full vote set

    Raises:
        ConfigurationError: If no provider adapter could be built
    """
    started = time.perf_counter()
    analysis_id = str(uuid.uuid4())
    created_at = datetime.now(timezone.utc)

    context = build_context(
        provider_configs,
        dynamic_weights=dynamic_weights,
        adapter_factory=adapter_factory,
        settings=settings,
        tiebreaker_id=tiebreaker_id,
    )
    logger.info(
        f"Analysis {analysis_id}: {len(context.bindings)} providers "
        f"({'calibrated' if context.dynamic_weights else 'static'} weights)"
    )

    stages = await StageOrchestrator(context).run(images, prompt)
    consensus = calculate_consensus(stages.votes)

    if ledger is not None:
        for vote in stages.votes:
            ledger.record_vote(analysis_id, vote)
        ledger.record_consensus(analysis_id, consensus, created_at)

    processing_time_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        f"Analysis {analysis_id}: {consensus.item_name} ${consensus.estimated_value:.2f} "
        f"{consensus.decision} confidence={consensus.confidence} quality={consensus.quality.value} "
        f"votes={consensus.total_votes} in {processing_time_ms}ms"
    )

    return ConsensusOutcome(
        analysis_id=analysis_id,
        consensus=consensus,
        votes=stages.votes,
        created_at=created_at,
        processing_time_ms=processing_time_ms,
        stage_counts=stages.stage_counts,
        tiebreaker_triggered=stages.tiebreaker is not None and stages.tiebreaker.triggered,
    )
