"""Fold batch outcomes into a dispatch summary.

The fold is associative and commutative (it is a field-wise sum), which is
what allows batches to complete in any order under bounded parallelism
without changing the summary.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import reduce
from operator import add

from mass_notify.types import BatchOutcome, Delivered, DispatchSummary

__all__ = ["fold", "summarize"]


def summarize(outcome: BatchOutcome) -> DispatchSummary:
    """Summary of a single batch."""
    sent = sum(1 for item in outcome.outcomes if isinstance(item, Delivered))
    return DispatchSummary(
        total_endpoints=outcome.endpoint_count,
        sent_count=sent,
        failed_count=outcome.endpoint_count - sent,
    )


def fold(outcomes: Iterable[BatchOutcome]) -> DispatchSummary:
    """Summary of a whole run; ``sent_count + failed_count == total_endpoints``."""
    return reduce(add, (summarize(outcome) for outcome in outcomes), DispatchSummary.empty())
