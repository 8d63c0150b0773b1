"""Core services: interval calendar, term index, merging, scheduling and pruning."""

from marketflow.core.services.flows import FlowBuilder, covering_bounds
from marketflow.core.services.intervals import (
    add_intervals,
    describe_interval,
    format_interval,
    next_tick,
    parse_interval,
    to_naive_utc,
)
from marketflow.core.services.merge import DatasetBuilder, merge
from marketflow.core.services.pruning import ALL, NONE, ConstrainedFilter, DatasetFilter, build_filter, prune
from marketflow.core.services.scheduler import (
    AggregationMode,
    AggregationRequest,
    AggregationResult,
    DownloadScheduler,
    run_aggregation,
)
from marketflow.core.services.terms import ReconciliationPolicy, TermIndexBuilder

__all__ = [
    "ALL",
    "AggregationMode",
    "AggregationRequest",
    "AggregationResult",
    "ConstrainedFilter",
    "DatasetBuilder",
    "DatasetFilter",
    "DownloadScheduler",
    "FlowBuilder",
    "NONE",
    "ReconciliationPolicy",
    "TermIndexBuilder",
    "add_intervals",
    "build_filter",
    "covering_bounds",
    "describe_interval",
    "format_interval",
    "merge",
    "next_tick",
    "parse_interval",
    "prune",
    "run_aggregation",
    "to_naive_utc",
]
