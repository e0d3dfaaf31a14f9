"""Bounded-parallelism runner: fixed-size batches, results kept in input order."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def run_batched(
    items: Sequence[T],
    fn: Callable[[T, int], R],
    concurrency: int = 3,
    *,
    pause: float = 0.0,
    on_error: Callable[[T, int, BaseException], R] | None = None,
    on_done: Callable[[int, R], None] | None = None,
) -> list[R]:
    """
    Run fn(item, index) over items, at most `concurrency` at a time. Each batch
    finishes completely before the next starts. results[i] always belongs to items[i],
    whatever order the calls complete in. If fn raises, on_error(item, index, exc)
    supplies the result; without on_error the exception propagates after the batch.
    """
    if not items:
        return []
    size = max(1, concurrency)
    results: list[R | None] = [None] * len(items)
    n_batches = (len(items) + size - 1) // size

    with ThreadPoolExecutor(max_workers=min(size, len(items))) as ex:
        for b, start in enumerate(range(0, len(items), size)):
            batch = items[start:start + size]
            logger.debug("Batch %d/%d (%d items)", b + 1, n_batches, len(batch))
            futures = [ex.submit(fn, item, start + i) for i, item in enumerate(batch)]
            first_exc: BaseException | None = None
            for i, fut in enumerate(futures):
                index = start + i
                try:
                    results[index] = fut.result()
                except Exception as e:
                    if on_error is None:
                        first_exc = first_exc or e
                        continue
                    results[index] = on_error(batch[i], index, e)
                if on_done is not None:
                    on_done(index, results[index])
            if first_exc is not None:
                raise first_exc
            if pause > 0 and start + size < len(items):
                time.sleep(pause)
    return results  # type: ignore[return-value]
