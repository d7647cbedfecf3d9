"""
Notification pipeline.

Turns one inbound batch of runs into Discord deliveries:

1. Drop runs that are not verified
2. Load every subscription once (store failures abort the batch)
3. Per run: match subscriptions, one task per destination
4. Per destination: classify, apply the event scope, compose, send
5. Prune subscriptions whose webhook is gone

``process_batch`` returns only after every delivery task has finished.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from srcsender.contracts.runs import RunStatus
from srcsender.contracts.subscriptions import EventScope
from srcsender.logging_config import redact_webhook_url
from srcsender.notify.classifier import EventClassifier
from srcsender.notify.composer import NotificationComposer
from srcsender.notify.matcher import match_subscriptions
from srcsender.notify.sinks.base import DeliveryOutcome
from srcsender.store.base import StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from srcsender.contracts.runs import RunRecord
    from srcsender.contracts.subscriptions import Subscription
    from srcsender.notify.context import ServiceContext
    from srcsender.notify.matcher import MatchResult

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Counts for one processed batch."""

    runs_received: int = 0
    runs_verified: int = 0
    runs_matched: int = 0
    deliveries_attempted: int = 0
    delivered: int = 0
    gone: int = 0
    rate_limited: int = 0
    failed: int = 0
    skipped_scope: int = 0  # Ordinary runs withheld from pb-only subscriptions
    skipped_gone: int = 0  # Sends skipped because the webhook was pruned earlier in the batch
    subscriptions_pruned: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class PipelineMetrics:
    """Cumulative counters across batches."""

    batches: int = 0
    batches_failed: int = 0
    runs_received: int = 0
    runs_verified: int = 0
    deliveries: dict[str, int] = field(default_factory=dict)  # outcome -> count
    subscriptions_pruned: int = 0
    task_errors: int = 0

    def record(self, report: BatchReport) -> None:
        self.batches += 1
        self.runs_received += report.runs_received
        self.runs_verified += report.runs_verified
        self.subscriptions_pruned += report.subscriptions_pruned
        for outcome in DeliveryOutcome:
            count = getattr(report, outcome.value)
            if count:
                self.deliveries[outcome.value] = self.deliveries.get(outcome.value, 0) + count


class _BatchState:
    """Per-batch state shared by the delivery tasks of one batch."""

    def __init__(self, classifier: EventClassifier) -> None:
        self.classifier = classifier
        self.report = BatchReport()
        self.pruned: set[str] = set()


class NotificationPipeline:
    """
    Processes run batches against the subscription store.

    One instance serves every batch; per-batch state (classification cache,
    pruned webhooks, counts) is created fresh by ``process_batch``.
    """

    def __init__(
        self,
        context: ServiceContext,
        composer: NotificationComposer | None = None,
    ) -> None:
        self._context = context
        self._composer = composer or NotificationComposer()
        self._metrics = PipelineMetrics()

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    @property
    def context(self) -> ServiceContext:
        return self._context

    async def process_batch(self, runs: Sequence[RunRecord]) -> BatchReport:
        """
        Notify every matching subscription about the verified runs in a batch.

        Args:
            runs: Parsed runs in arrival order.

        Returns:
            Counts for the batch, once all deliveries have completed.

        Raises:
            StoreUnavailableError: If subscriptions cannot be listed. Nothing
                is delivered in that case.
        """
        state = _BatchState(EventClassifier(self._context.leaderboards))
        report = state.report
        report.runs_received = len(runs)

        verified = [run for run in runs if run.status == RunStatus.VERIFIED]
        report.runs_verified = len(verified)
        if not verified:
            self._metrics.record(report)
            logger.debug("No verified runs in batch", extra={"runs": len(runs)})
            return report

        try:
            subscriptions = await self._context.store.list_subscriptions()
        except StoreUnavailableError as e:
            self._metrics.batches_failed += 1
            logger.error("Subscription store unavailable", extra={"error": str(e)})
            raise

        results = await asyncio.gather(
            *[self._process_run(state, run, subscriptions) for run in verified],
            return_exceptions=True,
        )
        for run, result in zip(verified, results, strict=True):
            if isinstance(result, Exception):
                self._metrics.task_errors += 1
                logger.error(
                    "Run processing error",
                    extra={"run_id": run.id, "error": str(result) or type(result).__name__},
                )

        self._metrics.record(report)
        logger.info("Batch processed", extra=report.to_dict())
        return report

    async def _process_run(
        self,
        state: _BatchState,
        run: RunRecord,
        subscriptions: list[Subscription],
    ) -> None:
        matches = match_subscriptions(run, subscriptions)
        if not matches:
            return
        state.report.runs_matched += 1

        results = await asyncio.gather(
            *[self._notify(state, run, match) for match in matches.values()],
            return_exceptions=True,
        )
        for match, result in zip(matches.values(), results, strict=True):
            if isinstance(result, Exception):
                self._metrics.task_errors += 1
                logger.error(
                    "Delivery task error",
                    extra={
                        "run_id": run.id,
                        "webhook": redact_webhook_url(match.webhook_url),
                        "error": str(result) or type(result).__name__,
                    },
                )

    async def _notify(self, state: _BatchState, run: RunRecord, match: MatchResult) -> None:
        report = state.report
        classification = await state.classifier.classify(run, match.participant_index)

        if match.subscription.records.events == EventScope.PB and not classification.is_personal_best:
            report.skipped_scope += 1
            return

        payload = self._composer.compose(run, match.participant_index, classification)

        url = match.webhook_url
        if url in state.pruned:
            report.skipped_gone += 1
            return

        report.deliveries_attempted += 1
        result = await self._context.sink.send(url, payload)

        if result.outcome == DeliveryOutcome.DELIVERED:
            report.delivered += 1
        elif result.outcome == DeliveryOutcome.GONE:
            report.gone += 1
            await self._prune(state, url)
        elif result.outcome == DeliveryOutcome.RATE_LIMITED:
            report.rate_limited += 1
        else:
            report.failed += 1

    async def _prune(self, state: _BatchState, url: str) -> None:
        """Delete the subscription for a gone webhook, once per batch."""
        if url in state.pruned:
            return
        state.pruned.add(url)
        try:
            removed = await self._context.store.delete_subscription(url)
        except StoreUnavailableError as e:
            logger.error(
                "Failed to prune subscription",
                extra={"webhook": redact_webhook_url(url), "error": str(e)},
            )
            return
        if removed:
            state.report.subscriptions_pruned += 1
            logger.info("Pruned subscription", extra={"webhook": redact_webhook_url(url)})
