"""Concurrent refresh loop: predict new subjects, repredict stale ones."""

import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Optional, Union

import structlog

from observability import Metrics, log_run_summary, metrics
from shared_types import RepredictionAction

from .indexer import RepredictionIndexer
from .models import GenerationResult, SubjectKey

logger = structlog.get_logger()

Generator = Callable[
    [SubjectKey, str],
    Union[GenerationResult, Awaitable[GenerationResult]],
]

DEFAULT_MAX_CONCURRENCY = 4


@dataclass
class RefreshOutcome:
    subject: SubjectKey
    action: RepredictionAction | None
    index: int | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class RefreshRunner:
    """Process independent subjects with bounded concurrency.

    The generator is awaited when it is a coroutine function and otherwise
    run in a worker thread. A failure for one subject is logged and counted;
    the other subjects still run.
    """

    def __init__(
        self,
        indexer: RepredictionIndexer,
        generator: Generator,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        max_repredictions: Optional[int] = None,
        collector: Metrics | None = None,
    ):
        self.indexer = indexer
        self.generator = generator
        self.max_concurrency = max(1, max_concurrency)
        self.max_repredictions = max_repredictions
        self.metrics = collector or metrics

    @classmethod
    def from_config(
        cls,
        indexer: RepredictionIndexer,
        generator: Generator,
        runner_config,
        collector: Metrics | None = None,
    ) -> "RefreshRunner":
        """Build a runner from the ``runner`` config section."""
        return cls(
            indexer,
            generator,
            max_concurrency=runner_config.max_concurrency,
            max_repredictions=runner_config.max_repredictions,
            collector=collector,
        )

    async def _generate(self, subject: SubjectKey) -> GenerationResult:
        if inspect.iscoroutinefunction(self.generator):
            return await self.generator(subject, subject.community_context)
        return await asyncio.to_thread(self.generator, subject, subject.community_context)

    async def _process(self, subject: SubjectKey, semaphore: asyncio.Semaphore) -> RefreshOutcome:
        async with semaphore:
            try:
                with self.metrics.timer("subject_duration"):
                    decision = await asyncio.to_thread(
                        self.indexer.decide, subject, self.max_repredictions
                    )
                    for warning in decision.warnings:
                        logger.warning("staleness_warning", entity_id=subject.entity_id, warning=warning)

                    if not decision.should_predict:
                        name = (
                            "subject_max_reached"
                            if decision.action == RepredictionAction.SKIP_MAX_REACHED
                            else "subject_current"
                        )
                        self.metrics.counter(name)
                        return RefreshOutcome(
                            subject, decision.action, decision.current_index, decision.warnings
                        )

                    result = await self._generate(subject)
                    index = await asyncio.to_thread(
                        self.indexer.append_next,
                        subject,
                        result.value,
                        result.document_names,
                        result.cost,
                        result.token_usage,
                        result.group,
                    )
            except Exception as e:
                logger.warning(
                    "subject_refresh_failed",
                    entity_id=subject.entity_id,
                    model=subject.model,
                    community_context=subject.community_context,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.metrics.counter("subject_failed")
                return RefreshOutcome(subject, None, error=str(e))

            if decision.action == RepredictionAction.PREDICT_FIRST:
                self.metrics.counter("subject_predicted")
            else:
                self.metrics.counter("subject_repredicted")
            logger.info(
                "subject_refreshed",
                entity_id=subject.entity_id,
                action=str(decision.action),
                index=index,
                cost=result.cost,
            )
            return RefreshOutcome(subject, decision.action, index, decision.warnings)

    async def run(self, subjects: Iterable[SubjectKey]) -> list[RefreshOutcome]:
        run_id = uuid.uuid4().hex[:8]
        structlog.contextvars.bind_contextvars(run_id=run_id)
        try:
            semaphore = asyncio.Semaphore(self.max_concurrency)
            subject_list = list(subjects)
            logger.info("refresh_started", subjects=len(subject_list))
            outcomes = await asyncio.gather(*(self._process(s, semaphore) for s in subject_list))
            logger.info(
                "refresh_finished",
                subjects=len(outcomes),
                failed=sum(1 for o in outcomes if o.failed),
            )
            log_run_summary(self.metrics)
            return list(outcomes)
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

    def run_now(self, subjects: Iterable[SubjectKey]) -> list[RefreshOutcome]:
        """Run from sync context."""
        return asyncio.run(self.run(subjects))
