# scriptgrader/services/page_order.py
"""
Page-order resolution.

Students photograph pages in whatever order they like. One cheap vision call per page
reads the printed page number; pages are then sorted by it. If the detected numbers are
not one consecutive run (2,3,4 but not 2,5,8) the detector most likely read question
numbers instead, so every detection is dropped and the upload order is kept.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from scriptgrader.services.execution import ParallelStrategy, UnitResult
from scriptgrader.services.llm_client import GradingModelClient

logger = logging.getLogger(__name__)


@dataclass
class PageImage:
    data: bytes
    mime_type: str = "image/jpeg"
    url: Optional[str] = None


@dataclass
class PageOrder:
    ordered_indices: List[int]
    ordered_images: List[PageImage]
    detected_numbers: List[Optional[int]] = field(default_factory=list)
    used_fallback: bool = False


def is_consecutive(numbers: Sequence[int]) -> bool:
    ordered = sorted(numbers)
    return all(b == a + 1 for a, b in zip(ordered, ordered[1:]))


def order_by_page_numbers(detected: Sequence[Optional[int]]) -> tuple[List[int], bool]:
    """
    Returns (ordered original indices, used_fallback).

    Pages without a number go after all numbered pages, keeping their upload order.
    """
    identity = list(range(len(detected)))
    known = [n for n in detected if n is not None]
    if not known:
        return identity, False
    if not is_consecutive(known):
        return identity, True

    # sorted() is stable, so unnumbered pages keep their relative order
    ordered = sorted(
        identity,
        key=lambda i: (detected[i] is None, detected[i] if detected[i] is not None else 0),
    )
    return ordered, False


class PageOrderResolver:
    def __init__(self, client: GradingModelClient, strategy=None):
        self.client = client
        self.strategy = strategy or ParallelStrategy()

    def _detect(self, index: int, image: PageImage) -> Optional[int]:
        return self.client.detect_page_number(image.data, image.mime_type)

    def resolve_order(self, images: Sequence[PageImage]) -> PageOrder:
        images = list(images)
        if len(images) <= 1:
            return PageOrder(
                ordered_indices=list(range(len(images))),
                ordered_images=images,
                detected_numbers=[None] * len(images),
            )

        results: List[UnitResult[Optional[int]]] = self.strategy.map(self._detect, images)
        # a failed detection is just an unknown page number
        detected = [r.value_or(None) for r in results]
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"Page number detection failed for {failed}/{len(images)} page(s)")

        ordered_indices, used_fallback = order_by_page_numbers(detected)
        if used_fallback:
            logger.info(
                f"Detected page numbers {detected} are not consecutive; keeping upload order"
            )
        else:
            logger.info(f"Detected page numbers {detected}; order {ordered_indices}")

        return PageOrder(
            ordered_indices=ordered_indices,
            ordered_images=[images[i] for i in ordered_indices],
            detected_numbers=detected,
            used_fallback=used_fallback,
        )
