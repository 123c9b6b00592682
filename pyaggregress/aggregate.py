"""
Partitioned aggregation: fold every partition, then tree-reduce.

Each partition is folded independently (optionally on a thread pool; the
NumPy cross-products release the GIL) and the partial states are merged
with a fan-in tree reduction. Merges are associative and commutative, so
the grouping only changes floating-point round-off.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional, TypeVar

from ._config import DEFAULT_SPLIT_EVERY

log = logging.getLogger(__name__)

P = TypeVar("P")
S = TypeVar("S")


def fold_partitions(
    partitions: Iterable[P],
    fold: Callable[[P], S],
    combine: Callable[[S, S], S],
    n_jobs: int = 1,
    split_every: int = DEFAULT_SPLIT_EVERY,
) -> Optional[S]:
    """Fold each partition into a partial state and merge them.

    Parameters
    ----------
    partitions : iterable
        Partitions of rows, in whatever form ``fold`` accepts.
    fold : callable
        ``fold(partition) -> state`` for one partition.
    combine : callable
        Pairwise merge ``(a, b) -> c``.
    n_jobs : int, default 1
        Threads used to fold partitions. 1 folds sequentially.
    split_every : int, default 8
        Number of partial states merged per reduction step.

    Returns
    -------
    state or None
        The fully merged state, or None if there were no partitions.
    """
    partitions = list(partitions)
    if not partitions:
        return None

    if n_jobs > 1 and len(partitions) > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            partials = list(pool.map(fold, partitions))
    else:
        partials = [fold(part) for part in partitions]

    log.debug("fold_partitions: %d partitions → tree-reduce", len(partials))
    return tree_reduce(partials, combine, split_every)


def tree_reduce(items: list, combine: Callable, split_every: int = DEFAULT_SPLIT_EVERY):
    """Tree-reduce a list of partial states with configurable fan-in.

    Groups ``split_every`` items per reduction step and folds each group
    left to right. With 64 items and ``split_every=8`` this takes two
    levels instead of a 63-deep chain.
    """
    if split_every < 2:
        raise ValueError(f"split_every must be at least 2, got {split_every}")
    if not items:
        return None

    while len(items) > 1:
        items = [
            _reduce_group(combine, *items[i : i + split_every])
            for i in range(0, len(items), split_every)
        ]
    return items[0]


def _reduce_group(combine, *items):
    """Reduce a group of items by applying combine pairwise."""
    result = items[0]
    for item in items[1:]:
        result = combine(result, item)
    return result
