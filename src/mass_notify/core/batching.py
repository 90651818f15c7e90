"""Split an endpoint list into gateway-sized batches."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from mass_notify.types import Endpoint

__all__ = ["MAX_BATCH_SIZE", "chunk"]

# Documented per-call ceiling of the push gateway
MAX_BATCH_SIZE: Final[int] = 100


def chunk(endpoints: Sequence[Endpoint], max_size: int = MAX_BATCH_SIZE) -> tuple[tuple[Endpoint, ...], ...]:
    """Split endpoints into consecutive batches of at most ``max_size``.

    Concatenating the result gives back the input in its original order.
    Every batch but the last has exactly ``max_size`` elements and an empty
    input yields no batches at all.

    Args:
        endpoints: Endpoints in dispatch order
        max_size: Largest batch the gateway accepts

    Returns:
        Tuple of batches

    Raises:
        ValueError: If max_size is not positive

    Example:
        >>> [len(batch) for batch in chunk(list(range(250)), 100)]  # doctest: +SKIP
        [100, 100, 50]
    """
    if max_size <= 0:
        msg = f"max_size must be greater than zero, got {max_size}"
        raise ValueError(msg)
    return tuple(tuple(endpoints[start : start + max_size]) for start in range(0, len(endpoints), max_size))
