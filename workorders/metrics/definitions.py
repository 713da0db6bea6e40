"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

WORKFLOW_OPERATIONS_TOTAL = "ticket_workflow_operations_total"
WORKFLOW_DURATION_SECONDS = "ticket_workflow_duration_seconds"
ACTOR_RESOLUTION_TOTAL = "actor_resolution_total"


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=WORKFLOW_OPERATIONS_TOTAL,
        metric_type="counter",
        description="Ticket workflow operations by operation and outcome.",
        label_names=("operation", "outcome"),
    ),
    MetricDefinition(
        name=WORKFLOW_DURATION_SECONDS,
        metric_type="distribution",
        description="Duration of ticket workflow operations in seconds.",
        label_names=("operation",),
    ),
    MetricDefinition(
        name=ACTOR_RESOLUTION_TOTAL,
        metric_type="counter",
        description="Actor resolution attempts by the strategy that answered.",
        label_names=("strategy",),
    ),
)
