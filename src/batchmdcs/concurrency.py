"""Join-all execution of independent I/O operations."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def run_concurrently(
    operations: Sequence[Callable[[], T]],
    max_workers: Optional[int] = None,
) -> List[T]:
    """Run operations in parallel and wait for all of them.

    Every submitted operation is allowed to settle before returning, so
    nothing keeps running past this call. Results are returned in the order
    of ``operations``.

    Args:
        operations: Zero-argument callables.
        max_workers: Upper bound on concurrently running operations.

    Returns:
        List of results, one per operation.

    Raises:
        The exception of the first failing operation, in submission order.
    """
    if not operations:
        return []
    if len(operations) == 1:
        return [operations[0]()]

    workers = min(len(operations), max_workers or len(operations))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batchmdcs") as pool:
        futures = [pool.submit(op) for op in operations]
        wait(futures)

    for future in futures:
        exc = future.exception()
        if exc is not None:
            raise exc
    return [future.result() for future in futures]
