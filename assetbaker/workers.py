"""Ordered fan-out over a thread pool.

Results come back in submission order regardless of completion order, so
merged output is deterministic. The first failing task cancels everything
still queued and its exception propagates to the caller.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence, TypeVar

from tqdm import tqdm

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def map_ordered(
    fn: Callable[[T], R],
    items: Sequence[T],
    max_workers: Optional[int] = None,
    desc: Optional[str] = None,
    show_progress: bool = False,
) -> List[R]:
    if not items:
        return []
    if max_workers == 1:
        return [fn(item) for item in tqdm(items, desc=desc, disable=not show_progress)]

    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        futures: List[Future] = [ex.submit(fn, item) for item in items]
        try:
            for f in tqdm(as_completed(futures), total=len(futures), desc=desc, disable=not show_progress):
                f.result()
        except BaseException:
            cancelled = sum(1 for f in futures if f.cancel())
            if cancelled:
                logger.debug("Cancelled %d queued task(s) after a failure", cancelled)
            raise
        return [f.result() for f in futures]
