"""Page generation orchestrator.

Sequences one generation run and emits its SSE events through an
`EventSender`:

    generation-start
    classification ∥ retrieval
    reasoning-start, then hero fast path ∥ block-selection reasoning
    hero block events as soon as the hero is ready
    reasoning-step x3, reasoning-complete
    explicit product selections resolved against the catalog
    block-start / block-content / block-rationale per planned block
    generation-complete

Only reasoning failures and unexpected errors end a run; they are reported
as a single `error` event. Events are dropped once the client disconnects,
and no further blocks are attempted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from core.observability import get_tracer
from schemas.catalog import Product, RetrievalContext
from schemas.context import ExtensionContext
from schemas.events import (
    BlockContentPayload,
    BlockRationalePayload,
    BlockStartPayload,
    GenerationCompletePayload,
    GenerationEvent,
    GenerationStartPayload,
    InterpretationBrief,
    NavigationSummary,
    ReasoningCompletePayload,
    ReasoningStartPayload,
    ReasoningStepPayload,
    Recommendations,
)
from schemas.generation import (
    GeneratedBlock,
    IntentClassification,
    ProductSelection,
    QueryContext,
    ReasoningResult,
    SessionContext,
    SignalInterpretation,
)
from services.ai.block_generator import (
    extract_product_names,
    extract_recipe_names,
    failure_block,
    generate_hero_fast,
    render_block,
)
from services.ai.channel import EventSender
from services.ai.exceptions import (
    ContextOrchestrationError,
    GenerationError,
    OrchestrationError,
)
from services.ai.gateway import ModelGateway
from services.ai.intent_classifier import (
    build_query_from_context,
    build_session_context,
    classify_intent,
    classify_intent_from_context,
)
from services.ai.model_factory import resolve_preset
from services.ai.reasoning_engine import (
    analyze_and_select_blocks,
    format_reasoning_for_display,
)
from services.ai.signal_interpreter import interpret_signals
from services.catalog import ContentCatalog


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

ESTIMATED_BLOCKS = 5
HERO_RATIONALE = "Generated via fast path for optimal time-to-first-content"


@dataclass(slots=True)
class GenerationRun:
    """What a completed run produced, for callers beyond the event stream."""

    query: str
    intent: IntentClassification
    blocks: list[GeneratedBlock]
    reasoning: ReasoningResult
    duration_ms: int


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def resolve_selected_products(
    selections: Sequence[ProductSelection], catalog: ContentCatalog
) -> list[Product]:
    """Catalog products for explicit selections, with their provenance attached.

    Unknown ids are logged and skipped.
    """
    resolved = []
    for selection in selections:
        product = catalog.get_product_by_id(selection.id)
        if product is None:
            logger.warning(f"Selected product id not in catalog: {selection.id!r}")
            continue
        resolved.append(
            product.model_copy(
                update={
                    "match_rationale": selection.rationale,
                    "is_primary_match": selection.is_primary,
                }
            )
        )
    return resolved


class _PageRun:
    """State owned by a single generation run."""

    def __init__(
        self,
        sender: EventSender,
        gateway: ModelGateway,
        catalog: ContentCatalog,
        preset: str | None,
    ) -> None:
        self.sender = sender
        self.gateway = gateway
        self.catalog = catalog
        self.preset = preset
        self.started = time.monotonic()

    def emit(self, event: GenerationEvent) -> None:
        self.sender.send(event)

    def emit_step(self, stage: str, title: str, content: str) -> None:
        self.emit(
            GenerationEvent.of(
                "reasoning-step",
                ReasoningStepPayload(stage=stage, title=title, content=content),
            )
        )

    def emit_block(
        self, index: int, block: GeneratedBlock, rationale: str, fast_path: bool = False
    ) -> None:
        self.emit(
            GenerationEvent.of(
                "block-start",
                BlockStartPayload(
                    block_type=block.type,
                    index=index,
                    fast_path=True if fast_path else None,
                ),
            )
        )
        self.emit(
            GenerationEvent.of(
                "block-content",
                BlockContentPayload(
                    index=index,
                    html=block.html,
                    section_style=block.section_style,
                    hero_composition=block.hero_composition,
                ),
            )
        )
        self.emit(
            GenerationEvent.of(
                "block-rationale",
                BlockRationalePayload(block_type=block.type, rationale=rationale),
            )
        )

    async def _hero_and_reasoning(
        self,
        query: str,
        intent: IntentClassification,
        retrieval: RetrievalContext,
        session: SessionContext | None,
        interpretation: SignalInterpretation | None,
        profile_confidence: float | None,
    ) -> tuple[GeneratedBlock, ReasoningResult]:
        hero_task = asyncio.create_task(
            generate_hero_fast(
                self.gateway,
                query,
                intent,
                retrieval,
                catalog=self.catalog,
                preset=self.preset,
            )
        )
        reasoning_task = asyncio.create_task(
            analyze_and_select_blocks(
                self.gateway,
                query,
                intent,
                retrieval,
                session=session,
                interpretation=interpretation,
                profile_confidence=profile_confidence,
                catalog=self.catalog,
                preset=self.preset,
            )
        )
        try:
            hero = await hero_task
            logger.info(f"Hero generated in {_elapsed_ms(self.started)}ms (fast path)")
            self.emit_block(0, hero, HERO_RATIONALE, fast_path=True)
            reasoning = await reasoning_task
        except BaseException:
            hero_task.cancel()
            reasoning_task.cancel()
            raise
        return hero, reasoning

    async def generate_page(
        self,
        query: str,
        intent: IntentClassification,
        retrieval: RetrievalContext,
        *,
        session: SessionContext | None = None,
        interpretation: SignalInterpretation | None = None,
        profile_confidence: float | None = None,
    ) -> GenerationRun:
        """Everything from reasoning-start to generation-complete."""
        preset = resolve_preset(self.preset)
        self.emit(
            GenerationEvent.of(
                "reasoning-start",
                ReasoningStartPayload(
                    model=self.gateway.model_name("reasoning", self.preset),
                    preset=preset,
                    hero_fast_path=True,
                ),
            )
        )

        with tracer.start_as_current_span("generation.hero_and_reasoning"):
            hero, reasoning = await self._hero_and_reasoning(
                query, intent, retrieval, session, interpretation, profile_confidence
            )

        for step in format_reasoning_for_display(reasoning.reasoning):
            self.emit_step(step.stage, step.title, step.content)
        self.emit(
            GenerationEvent.of(
                "reasoning-complete",
                ReasoningCompletePayload(
                    confidence=reasoning.confidence,
                    duration=_elapsed_ms(self.started),
                ),
            )
        )

        if reasoning.selected_products:
            resolved = resolve_selected_products(
                reasoning.selected_products, self.catalog
            )
            if resolved:
                logger.info(
                    "Using selected products: "
                    + ", ".join(
                        f"{p.name}{' (PRIMARY)' if p.is_primary_match else ''}"
                        for p in resolved
                    )
                )
                retrieval.products = resolved
            else:
                logger.warning(
                    "No selected product resolved; keeping retrieval products"
                )

        blocks = [hero]
        remaining = [b for b in reasoning.selected_blocks if b.type != "hero"]
        with tracer.start_as_current_span("generation.blocks") as span:
            span.set_attribute("blocks.planned", len(remaining))
            for index, selection in enumerate(remaining, start=1):
                if self.sender.closed:
                    logger.info("Client disconnected; stopping block generation")
                    break
                with tracer.start_as_current_span("generation.block") as block_span:
                    block_span.set_attribute("block.type", selection.type)
                    block_span.set_attribute("block.index", index)
                    try:
                        block = await render_block(
                            self.gateway,
                            selection,
                            retrieval,
                            reasoning,
                            query=query,
                            intent=intent,
                            catalog=self.catalog,
                            preset=self.preset,
                        )
                    except Exception:  # noqa: BLE001
                        logger.exception(f"Rendering {selection.type} block failed")
                        block = failure_block(selection.type)
                self.emit_block(index, block, selection.rationale)
                if block.html:
                    blocks.append(block)
                else:
                    logger.info(f"Omitting empty {selection.type} block from the page")

        duration = _elapsed_ms(self.started)
        journey = reasoning.user_journey
        self.emit(
            GenerationEvent.of(
                "generation-complete",
                GenerationCompletePayload(
                    total_blocks=len(blocks),
                    duration=duration,
                    intent=intent,
                    reasoning=NavigationSummary(
                        journey_stage=journey.current_stage,
                        confidence=reasoning.confidence,
                        next_best_action=journey.next_best_action,
                        suggested_follow_ups=journey.suggested_follow_ups,
                    ),
                    recommendations=Recommendations(
                        products=extract_product_names(blocks),
                        recipes=extract_recipe_names(blocks),
                        block_types=[b.type for b in blocks],
                    ),
                    signal_interpretation=_brief(interpretation),
                ),
            )
        )
        logger.info(f"Generated {len(blocks)} blocks in {duration}ms")
        return GenerationRun(
            query=query,
            intent=intent,
            blocks=blocks,
            reasoning=reasoning,
            duration_ms=duration,
        )

    def fail(self, error: Exception, fallback: GenerationError) -> None:
        if isinstance(error, GenerationError):
            message = error.message
        else:
            message = str(error) or fallback.message
        self.emit(GenerationEvent.error(message, fallback.error_code))


def _brief(interpretation: SignalInterpretation | None) -> InterpretationBrief | None:
    if interpretation is None:
        return None
    summary = interpretation.interpretation
    return InterpretationBrief(
        primary_intent=summary.primary_intent,
        journey_stage=summary.journey_stage,
        emotional_context=summary.emotional_context,
        specific_needs=summary.specific_needs,
    )


async def orchestrate(
    query_context: QueryContext,
    sender: EventSender,
    gateway: ModelGateway,
    catalog: ContentCatalog,
    *,
    preset: str | None = None,
) -> GenerationRun | None:
    """Generate a page for an explicit query.

    Returns None when the run ended with an `error` event.
    """
    run = _PageRun(sender, gateway, catalog, preset)
    query = query_context.query
    try:
        with tracer.start_as_current_span("generation.query") as span:
            span.set_attribute("history.count", len(query_context.previous_queries))
            run.emit(
                GenerationEvent.of(
                    "generation-start",
                    GenerationStartPayload(
                        query=query, estimated_blocks=ESTIMATED_BLOCKS
                    ),
                )
            )
            history = query_context.previous_queries
            # Retrieval runs against the query alone; it never waits on the intent
            intent, retrieval = await asyncio.gather(
                classify_intent(gateway, query, history, preset=preset),
                asyncio.to_thread(
                    catalog.retrieve,
                    query,
                    None,
                    history=[item.query for item in history],
                ),
            )
            span.set_attribute("intent.type", intent.intent_type)
            session = SessionContext(
                previous_queries=list(history), profile=query_context.profile
            )
            return await run.generate_page(query, intent, retrieval, session=session)
    except Exception as e:
        logger.exception(f"Generation failed for slug {query_context.slug!r}")
        run.fail(e, OrchestrationError())
        return None


def _understanding_content(interpretation: SignalInterpretation) -> str:
    summary = interpretation.interpretation
    if summary.key_insights:
        insights = "\n".join(f"• {insight}" for insight in summary.key_insights)
        detail = f"Key insights:\n{insights}"
    else:
        detail = f"Emotional context: {summary.emotional_context}"
    return f"**{summary.primary_intent}**\n\n{detail}"


async def orchestrate_from_context(
    context: ExtensionContext,
    slug: str,
    sender: EventSender,
    gateway: ModelGateway,
    catalog: ContentCatalog,
    *,
    preset: str | None = None,
) -> GenerationRun | None:
    """Generate a page from captured browsing context.

    The signal interpretation, when available, supplies the run's intent;
    otherwise the context-aware classifier (and its profile heuristic) does.
    """
    run = _PageRun(sender, gateway, catalog, preset)
    try:
        with tracer.start_as_current_span("generation.context") as span:
            span.set_attribute("signals.count", len(context.signals))
            run.emit_step(
                "signals",
                "Interpreting Your Browsing Behavior",
                f"Analyzing {len(context.signals)} signals "
                "to understand your intent...",
            )
            interpretation = await interpret_signals(gateway, context, preset=preset)
            if interpretation is not None:
                run.emit_step(
                    "understanding",
                    "Understanding Your Intent",
                    _understanding_content(interpretation),
                )

            query = (
                context.query
                or (interpretation and interpretation.interpretation.primary_intent)
                or build_query_from_context(context)
            )
            if interpretation is not None:
                intent = interpretation.classification
            else:
                intent = await classify_intent_from_context(
                    gateway, query, context, preset=preset
                )
            span.set_attribute("intent.type", intent.intent_type)

            run.emit(
                GenerationEvent.of(
                    "generation-start",
                    GenerationStartPayload(
                        query=query,
                        estimated_blocks=ESTIMATED_BLOCKS,
                        interpretation=_brief(interpretation),
                        has_signals=bool(context.signals),
                    ),
                )
            )
            if context.previous_queries:
                numbered = "\n".join(
                    f"{i}. {q}" for i, q in enumerate(context.previous_queries, start=1)
                )
                run.emit_step(
                    "history", "Conversation History", f"Previous queries:\n{numbered}"
                )

            session = build_session_context(context)
            retrieval = await asyncio.to_thread(
                catalog.retrieve,
                query,
                intent.intent_type,
                history=list(context.previous_queries),
            )
            return await run.generate_page(
                query,
                intent,
                retrieval,
                session=session,
                interpretation=interpretation,
                profile_confidence=context.profile.confidence_score or None,
            )
    except Exception as e:
        logger.exception(f"Generation from context failed for slug {slug!r}")
        run.fail(e, ContextOrchestrationError())
        return None
