"""
Prometheus metrics exporter for srcsender.

Exports low-cardinality metrics for the notification pipeline, the upstream
client and the two rate limiters. No webhook URL, run, game or user labels:
webhook URLs are credentials and the rest are unbounded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

from srcsender.notify.sinks.base import DeliveryOutcome

if TYPE_CHECKING:
    from srcsender.connectors.limiter import TokenBucketLimiter
    from srcsender.connectors.speedrun import SpeedrunClientMetrics
    from srcsender.notify.pipeline import PipelineMetrics


# Forbidden labels that would cause cardinality explosion or leak credentials
FORBIDDEN_LABELS = frozenset(
    {
        "webhook",
        "webhook_url",
        "url",
        "run_id",
        "game_id",
        "category_id",
        "user_id",
        "token",
    }
)

LIMITER_NAMES = ("speedrun", "discord")


class MetricsExporter:
    """
    Prometheus metrics exporter for the sender.

    Metric families:
    - srcsender_batches_* / srcsender_runs_*: inbound batches
    - srcsender_deliveries_total{outcome}: webhook deliveries
    - srcsender_upstream_lookups_total{result}: speedrun.com lookups
    - srcsender_limiter_*{limiter}: token bucket state

    Usage:
        exporter = MetricsExporter()
        exporter.update(pipeline_metrics=pipeline.metrics, limiters=[...])
        # generate_latest(exporter.registry) -> bytes for /metrics
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        # === Batch metrics ===
        self._batches = Counter(
            "srcsender_batches",
            "Total inbound run batches processed",
            registry=self._registry,
        )
        self._batches_failed = Counter(
            "srcsender_batches_failed",
            "Total batches aborted because the subscription store was unavailable",
            registry=self._registry,
        )
        self._runs_received = Counter(
            "srcsender_runs_received",
            "Total runs received in batches",
            registry=self._registry,
        )
        self._runs_verified = Counter(
            "srcsender_runs_verified",
            "Total verified runs considered for notification",
            registry=self._registry,
        )

        # === Delivery metrics ===
        self._deliveries = Counter(
            "srcsender_deliveries",
            "Webhook delivery attempts by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self._subscriptions_pruned = Counter(
            "srcsender_subscriptions_pruned",
            "Subscriptions deleted because their webhook no longer exists",
            registry=self._registry,
        )
        self._task_errors = Counter(
            "srcsender_task_errors",
            "Unexpected exceptions caught at the delivery task boundary",
            registry=self._registry,
        )

        # === Upstream metrics ===
        self._upstream_lookups = Counter(
            "srcsender_upstream_lookups",
            "speedrun.com lookups by result",
            ["result"],
            registry=self._registry,
        )

        # === Limiter metrics ===
        self._limiter_tokens = Gauge(
            "srcsender_limiter_available_tokens",
            "Tokens currently available in the rate limiter",
            ["limiter"],
            registry=self._registry,
        )
        self._limiter_deferred = Counter(
            "srcsender_limiter_deferred",
            "Acquisitions that had to wait for a token",
            ["limiter"],
            registry=self._registry,
        )

        # Track last seen values for counter increments (counters are monotonic)
        self._last: dict[str, int] = {}

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def _inc_delta(self, key: str, current: int, counter: Counter) -> None:
        delta = current - self._last.get(key, 0)
        if delta > 0:
            counter.inc(delta)
        self._last[key] = current

    def update(
        self,
        pipeline_metrics: PipelineMetrics | None = None,
        client_metrics: SpeedrunClientMetrics | None = None,
        limiters: list[TokenBucketLimiter] | None = None,
    ) -> None:
        """
        Sync component counters into Prometheus.

        Call on every scrape. Counters advance by the delta since the previous
        call.
        """
        if pipeline_metrics is not None:
            self._update_pipeline_metrics(pipeline_metrics)

        if client_metrics is not None:
            self._inc_delta("upstream_ok", client_metrics.succeeded, self._upstream_lookups.labels(result="ok"))
            self._inc_delta(
                "upstream_error", client_metrics.failed, self._upstream_lookups.labels(result="error")
            )

        for limiter in limiters or []:
            name = limiter.name if limiter.name in LIMITER_NAMES else "other"
            status = limiter.get_status()
            self._limiter_tokens.labels(limiter=name).set(status["available_tokens"])
            self._inc_delta(
                f"limiter_deferred:{name}",
                limiter.metrics.deferred,
                self._limiter_deferred.labels(limiter=name),
            )

    def _update_pipeline_metrics(self, pm: PipelineMetrics) -> None:
        self._inc_delta("batches", pm.batches, self._batches)
        self._inc_delta("batches_failed", pm.batches_failed, self._batches_failed)
        self._inc_delta("runs_received", pm.runs_received, self._runs_received)
        self._inc_delta("runs_verified", pm.runs_verified, self._runs_verified)
        self._inc_delta("subscriptions_pruned", pm.subscriptions_pruned, self._subscriptions_pruned)
        self._inc_delta("task_errors", pm.task_errors, self._task_errors)
        for outcome in DeliveryOutcome:
            self._inc_delta(
                f"deliveries:{outcome.value}",
                pm.deliveries.get(outcome.value, 0),
                self._deliveries.labels(outcome=outcome.value),
            )

    def reset_counter_tracking(self) -> None:
        """
        Reset internal counter tracking.

        Does NOT reset the Prometheus counters themselves.
        """
        self._last.clear()


# Metric names as exposed (counters carry the _total suffix)
REQUIRED_METRIC_NAMES: frozenset[str] = frozenset(
    {
        "srcsender_batches_total",
        "srcsender_batches_failed_total",
        "srcsender_runs_received_total",
        "srcsender_runs_verified_total",
        "srcsender_deliveries_total",
        "srcsender_subscriptions_pruned_total",
        "srcsender_task_errors_total",
        "srcsender_upstream_lookups_total",
        "srcsender_limiter_available_tokens",
        "srcsender_limiter_deferred_total",
    }
)
