"""
Execution strategies for per-page work.

Page detection fans out in parallel, handwriting extraction runs page by page. Both go
through the same interface so the choice is a setting, not a code path. Each unit of work
comes back as a UnitResult: either a value or the exception that unit raised, in input
order. One failed unit never takes down its siblings or shifts their positions.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class UnitResult(Generic[R]):
    index: int
    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, sentinel: Any) -> Any:
        return self.value if self.ok else sentinel


def _run_unit(func: Callable[[int, T], R], index: int, item: T) -> UnitResult[R]:
    try:
        return UnitResult(index=index, value=func(index, item))
    except Exception as e:
        logger.warning(f"Unit {index} failed: {e}", exc_info=True)
        return UnitResult(index=index, error=e)


class SequentialStrategy:
    name = "sequential"

    def map(self, func: Callable[[int, T], R], items: Sequence[T]) -> List[UnitResult[R]]:
        return [_run_unit(func, i, item) for i, item in enumerate(items)]


class ParallelStrategy:
    name = "parallel"

    def __init__(self, max_workers: int = 8):
        self.max_workers = max(1, max_workers)

    def map(self, func: Callable[[int, T], R], items: Sequence[T]) -> List[UnitResult[R]]:
        if not items:
            return []
        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_run_unit, func, i, item) for i, item in enumerate(items)]
            # _run_unit never raises, so result() is safe; order follows the input
            return [f.result() for f in futures]


def make_strategy(name: str, max_workers: int = 8):
    name = (name or "").strip().lower()
    if name == "parallel":
        return ParallelStrategy(max_workers=max_workers)
    if name == "sequential":
        return SequentialStrategy()
    raise ValueError(f"Unknown execution strategy: {name!r} (expected 'parallel' or 'sequential')")
