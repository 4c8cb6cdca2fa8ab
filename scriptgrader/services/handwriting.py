# scriptgrader/services/handwriting.py
"""
Handwriting extraction: one vision call per page, in page order, producing

    --- Page 1 ---
    <content>

    --- Page 2 ---
    <content>

A page whose call fails gets a placeholder instead of vanishing, and an empty answer
comes back as the blank marker, so the transcript always has one section per page.
Only when every page fails, or the service is not configured at all, does extraction
raise.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from scriptgrader.core.errors import ServiceConfigurationError
from scriptgrader.services.execution import SequentialStrategy
from scriptgrader.services.llm_client import GradingModelClient
from scriptgrader.services.page_order import PageImage
from scriptgrader.services.prompts import BLANK_MARKER

logger = logging.getLogger(__name__)


def page_header(page_number: int) -> str:
    return f"--- Page {page_number} ---"


def error_placeholder(page_number: int) -> str:
    return f"[Error extracting page {page_number}]"


@dataclass
class ExtractionResult:
    text: str
    pages: List[str]
    failed_pages: List[int]


class HandwritingExtractor:
    def __init__(self, client: GradingModelClient, strategy=None):
        self.client = client
        # transcript order matters and this keeps one extraction call in flight per submission
        self.strategy = strategy or SequentialStrategy()

    def extract_handwritten(self, ordered_images: Sequence[PageImage]) -> ExtractionResult:
        images = list(ordered_images)
        total = len(images)

        def extract_page(index: int, image: PageImage) -> str:
            page_number = index + 1
            logger.info(f"Extracting handwriting from page {page_number}/{total}")
            return self.client.extract_handwriting(image.data, image.mime_type, page_number, total)

        results = self.strategy.map(extract_page, images)

        errors = [r.error for r in results if not r.ok]
        for error in errors:
            # a missing key fails every page the same way; placeholders would only hide it
            if isinstance(error, ServiceConfigurationError):
                raise error
        if images and len(errors) == len(images):
            raise errors[0]

        pages: List[str] = []
        failed: List[int] = []
        for result in results:
            page_number = result.index + 1
            if not result.ok:
                failed.append(page_number)
                pages.append(error_placeholder(page_number))
                continue
            content = (result.value or "").strip()
            pages.append(content or BLANK_MARKER)

        if failed:
            logger.warning(f"Handwriting extraction failed for page(s) {failed} of {total}")

        text = "\n\n".join(
            f"{page_header(i + 1)}\n{content}" for i, content in enumerate(pages)
        )
        logger.info(f"Extracted {len(text)} characters of handwritten content from {total} page(s)")
        return ExtractionResult(text=text, pages=pages, failed_pages=failed)
