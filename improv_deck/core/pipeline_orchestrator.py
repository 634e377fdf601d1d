"""
Pipeline orchestrator - coordinates topic, outline, image and persistence stages.

A run walks the states START -> TOPIC_ACQUIRED -> OUTLINE_ACQUIRED ->
IMAGES_ACQUIRED -> PERSISTED, or ends in FAILED from any of them. Every
PipelineError raised by a stage is turned into a failed PipelineResult, and
any other exception is wrapped with the reason of the stage it escaped from;
nothing is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from config import (
    GenerationConfig,
    IMAGE_PROVIDER,
    TOPIC_STRATEGY,
    TOPICS_FILE,
    OUTPUT_DIR,
    TRACE_HISTORY_FILE,
)
from improv_deck.core.artifact_store import ArtifactStore
from improv_deck.core.exceptions import (
    FailureReason,
    ImageGenerationError,
    OutlineParseError,
    PipelineError,
    PipelineTimeoutError,
    UnexpectedStageError,
)
from improv_deck.core.image_client import ImageClient
from improv_deck.core.logging_utils import log_stage_error, log_stage_info, log_stage_warning
from improv_deck.core.models import (
    Generation,
    GeneratedImage,
    PipelineResult,
    PipelineState,
    SlideDeckOutline,
    StoredGeneration,
)
from improv_deck.core.outline_client import OutlineClient, PromptConfiguration
from improv_deck.core.outline_parser import parse_outline
from improv_deck.core.prompts import build_outline_prompt
from improv_deck.core.provider_registry import ProviderRegistry, create_default_provider_registry
from improv_deck.core.topic_source import LLMTopicSource, TopicPoolSource, TopicSource
from improv_deck.utils.observability import ObservabilityLogger, StageStatus

logger = logging.getLogger(__name__)

STAGE_TOPIC = "topic"
STAGE_OUTLINE = "outline"
STAGE_IMAGES = "images"
STAGE_PERSIST = "persist"

STAGE_FAILURE_REASONS = {
    STAGE_TOPIC: FailureReason.NO_TOPIC_AVAILABLE,
    STAGE_OUTLINE: FailureReason.OUTLINE_REQUEST_FAILED,
    STAGE_IMAGES: FailureReason.IMAGE_GENERATION_FAILED,
    STAGE_PERSIST: FailureReason.PERSISTENCE_FAILED,
}


@dataclass
class _RunContext:
    """Mutable state of one run. Kept off the orchestrator so runs can overlap."""
    obs: ObservabilityLogger
    state: PipelineState = PipelineState.START
    stage: Optional[str] = None
    topic: Optional[str] = None
    outline: Optional[SlideDeckOutline] = None
    images: List[GeneratedImage] = field(default_factory=list)
    stored: Optional[StoredGeneration] = None


class PipelineOrchestrator:
    """
    Runs the generation pipeline end to end.

    Collaborators are injected so tests can replace every provider.
    """

    def __init__(
        self,
        topic_source: TopicSource,
        outline_client: OutlineClient,
        image_client: ImageClient,
        artifact_store: ArtifactStore,
        config: Optional[GenerationConfig] = None,
        trace_file: Optional[str] = None,
        print_summary: bool = False,
    ):
        self.topic_source = topic_source
        self.outline_client = outline_client
        self.image_client = image_client
        self.artifact_store = artifact_store
        self.config = config or GenerationConfig()
        self.trace_file = trace_file
        self.print_summary = print_summary

    async def run(self) -> PipelineResult:
        """
        Run the complete pipeline once.

        The deadline covers topic, outline and image stages. Persistence runs
        outside it so a run is never reported as timed out after its manifest
        has been written.

        Returns:
            PipelineResult; check .succeeded / .reason
        """
        ctx = _RunContext(obs=ObservabilityLogger(trace_file=self.trace_file))
        ctx.obs.start_pipeline("improv_deck_pipeline")
        log_stage_info(logger, "Starting generation", "PipelineOrchestrator", context=self.config.to_dict())

        error: Optional[PipelineError] = None
        try:
            if self.config.pipeline_timeout:
                try:
                    await asyncio.wait_for(self._generate(ctx), timeout=self.config.pipeline_timeout)
                except asyncio.TimeoutError:
                    timeout_error = PipelineTimeoutError(self.config.pipeline_timeout, stage=ctx.stage)
                    log_stage_warning(
                        logger, "Deadline exceeded, pending requests cancelled", "PipelineOrchestrator",
                        stage=ctx.stage, context={"timeout": self.config.pipeline_timeout},
                    )
                    ctx.obs.finish_stage(ctx.stage, StageStatus.FAILED, str(timeout_error))
                    raise timeout_error
            else:
                await self._generate(ctx)

            await self._persist(ctx)
        except PipelineError as e:
            error = e
        except Exception as e:
            error = UnexpectedStageError(
                f"{type(e).__name__}: {e}",
                STAGE_FAILURE_REASONS.get(ctx.stage, FailureReason.OUTLINE_REQUEST_FAILED),
                stage=ctx.stage,
            )
            error.__cause__ = e
            logger.exception(f"Unexpected error in stage '{ctx.stage}'")
            ctx.obs.finish_stage(ctx.stage, StageStatus.FAILED, str(error))

        if error is not None:
            ctx.state = PipelineState.FAILED
            log_stage_error(
                logger, "Pipeline failed", "PipelineOrchestrator", stage=error.stage, error=error,
                context={"reason": error.reason.value, "partial_images": len(ctx.images)},
            )

        metrics = ctx.obs.finish_pipeline()
        if self.print_summary:
            ctx.obs.print_metrics_summary()
        return PipelineResult(
            state=ctx.state,
            topic=ctx.topic,
            outline=ctx.outline,
            images=ctx.images,
            stored=ctx.stored,
            reason=error.reason.value if error else None,
            error=str(error) if error else None,
            failed_stage=error.stage if error else None,
            metrics=metrics.to_dict() if metrics else None,
        )

    async def _generate(self, ctx: _RunContext) -> None:
        await self._step_topic(ctx)
        await self._step_outline(ctx)
        await self._step_images(ctx)

    def _begin(self, ctx: _RunContext, stage: str) -> None:
        ctx.stage = stage
        ctx.obs.start_stage(stage)

    def _fail_stage(self, ctx: _RunContext, error: PipelineError) -> None:
        ctx.obs.finish_stage(ctx.stage, StageStatus.FAILED, str(error))

    async def _step_topic(self, ctx: _RunContext) -> None:
        """Step 1: Topic"""
        self._begin(ctx, STAGE_TOPIC)
        try:
            ctx.topic = await self.topic_source.next_topic()
        except PipelineError as e:
            self._fail_stage(ctx, e)
            raise
        ctx.state = PipelineState.TOPIC_ACQUIRED
        ctx.obs.finish_stage(STAGE_TOPIC, StageStatus.SUCCESS, ctx.topic)
        logger.info(f"Topic: {ctx.topic}")

    async def _step_outline(self, ctx: _RunContext) -> None:
        """Step 2: Outline request and validation"""
        self._begin(ctx, STAGE_OUTLINE)
        prompt_config = PromptConfiguration(
            prompt=build_outline_prompt(
                ctx.topic,
                total_slides=self.config.total_slides,
                total_text_slides=self.config.total_text_slides,
                include_opening_slide=self.config.include_opening_slide,
                avoid_subjects=self.config.avoid_subjects,
            ),
            temperature=self.config.temperature,
            max_output_tokens=self.config.max_output_tokens,
            headers=self.config.extra_headers,
            json_output=True,
        )
        try:
            raw_text = await self.outline_client.request_text(prompt_config, stage=STAGE_OUTLINE)
            ctx.outline = parse_outline(raw_text, topic=ctx.topic, max_title_slides=self.config.max_title_slides)
        except OutlineParseError as e:
            # Full offending output, not just the preview the parser logs
            logger.error(f"Unparseable outline ({e.kind.value}) for topic {ctx.topic!r}:\n{e.raw_output}")
            self._fail_stage(ctx, e)
            raise
        except PipelineError as e:
            self._fail_stage(ctx, e)
            raise
        ctx.state = PipelineState.OUTLINE_ACQUIRED
        ctx.obs.finish_stage(
            STAGE_OUTLINE, StageStatus.SUCCESS, f"{len(ctx.outline.slides)} slides"
        )

    async def _step_images(self, ctx: _RunContext) -> None:
        """
        Step 3: One image per image slide, at most image_concurrency in flight.

        The first failure cancels the requests still pending; images that had
        already completed are kept on the context as partial results.
        """
        self._begin(ctx, STAGE_IMAGES)
        image_slides = ctx.outline.image_slides()
        # Created here so it binds to the running loop
        semaphore = asyncio.Semaphore(self.config.image_concurrency)

        def on_retry(attempt, delay, error):
            ctx.obs.record_retry(STAGE_IMAGES, attempt, f"rate limited, waiting {delay:.2f}s")

        async def generate_one(index: int, description: str) -> GeneratedImage:
            async with semaphore:
                try:
                    return await self.image_client.generate(index, description, on_retry=on_retry)
                except PipelineError:
                    raise
                except Exception as e:
                    raise ImageGenerationError(str(e), slide_index=index, description=description) from e

        tasks = [
            asyncio.create_task(generate_one(index, slide.image.description))
            for index, slide in image_slides
        ]
        try:
            images = await asyncio.gather(*tasks)
        except BaseException as e:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            ctx.images = [
                task.result() for task in tasks
                if not task.cancelled() and task.exception() is None
            ]
            if isinstance(e, PipelineError):
                self._fail_stage(ctx, e)
            raise

        ctx.images = list(images)
        ctx.state = PipelineState.IMAGES_ACQUIRED
        ctx.obs.finish_stage(STAGE_IMAGES, StageStatus.SUCCESS, f"{len(ctx.images)} images")

    async def _persist(self, ctx: _RunContext) -> None:
        """Step 4: Write the generation to the artifact store"""
        self._begin(ctx, STAGE_PERSIST)
        generation = Generation(
            topic=ctx.topic,
            outline=ctx.outline,
            images={image.slide_index: image for image in ctx.images},
        )
        try:
            ctx.stored = await asyncio.to_thread(self.artifact_store.persist, generation)
        except PipelineError as e:
            self._fail_stage(ctx, e)
            raise
        ctx.state = PipelineState.PERSISTED
        ctx.obs.finish_stage(STAGE_PERSIST, StageStatus.SUCCESS, ctx.stored.generation_id)


def create_pipeline_orchestrator(
    config: Optional[GenerationConfig] = None,
    artifact_store: Optional[ArtifactStore] = None,
    provider_registry: Optional[ProviderRegistry] = None,
    image_provider: str = IMAGE_PROVIDER,
    topic_strategy: str = TOPIC_STRATEGY,
    output_dir: str = OUTPUT_DIR,
    print_summary: bool = False,
) -> PipelineOrchestrator:
    """
    Assemble an orchestrator from configuration.

    Args:
        config: Per-run configuration (defaults from config.py)
        artifact_store: Store for completed generations (default location if omitted)
        provider_registry: Registry to build providers from (built-in providers if omitted)
        image_provider: Registered image provider name
        topic_strategy: "llm" or "pool"
        output_dir: Directory for the trace history file
        print_summary: Print the metrics summary after each run

    Returns:
        Ready-to-run PipelineOrchestrator
    """
    config = config or GenerationConfig()
    registry = provider_registry or create_default_provider_registry()
    if not registry.has(image_provider):
        raise ValueError(f"Unknown image provider '{image_provider}' (registered: {registry.names()})")

    outline_client = OutlineClient(registry.get("gemini"))
    if topic_strategy == "pool":
        topic_source = TopicPoolSource(TOPICS_FILE)
    elif topic_strategy == "llm":
        topic_source = LLMTopicSource(outline_client, config)
    else:
        raise ValueError(f"Unknown topic strategy '{topic_strategy}' (expected 'llm' or 'pool')")

    return PipelineOrchestrator(
        topic_source=topic_source,
        outline_client=outline_client,
        image_client=ImageClient(registry.get(image_provider)),
        artifact_store=artifact_store or ArtifactStore(),
        config=config,
        trace_file=str(Path(output_dir) / TRACE_HISTORY_FILE),
        print_summary=print_summary,
    )
