"""
LLM Client Service
Remote vision / reasoning calls used by the grading pipeline.

The pipeline only sees the GradingModelClient interface. GeminiClient is the production
implementation; it is built by the composition root (scoring_service.build_grading_pipeline)
and configures the SDK the first time it is actually used, so constructing one is free.
"""

import logging
import re
import threading
from abc import ABC, abstractmethod
from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from scriptgrader.core.errors import (
    GradingServiceError,
    ServiceConfigurationError,
    TransientServiceError,
    is_network_error,
)
from scriptgrader.services.prompts import (
    NO_PAGE_NUMBER,
    PAGE_NUMBER_PROMPT,
    grading_prompt,
    handwriting_prompt,
)

logger = logging.getLogger(__name__)

_TRANSIENT_GOOGLE_ERRORS = (
    google_exceptions.DeadlineExceeded,
    google_exceptions.ServiceUnavailable,
    google_exceptions.RetryError,
)
_CONFIG_GOOGLE_ERRORS = (
    google_exceptions.Unauthenticated,
    google_exceptions.PermissionDenied,
)
_NETWORK_MESSAGE_HINTS = ("econnreset", "etimedout", "enotfound", "connection reset", "timed out", "timeout", "name resolution")

_PAGE_NUMBER_RE = re.compile(r"\d+")


def parse_page_number(raw: str) -> Optional[int]:
    """'3' -> 3, 'Page 3' -> 3, 'NONE' / '' -> None."""
    text = (raw or "").strip()
    if not text or text.upper().startswith(NO_PAGE_NUMBER):
        return None
    match = _PAGE_NUMBER_RE.search(text)
    if match is None:
        return None
    number = int(match.group())
    return number if number > 0 else None


def translate_exception(exc: Exception) -> Exception:
    """Map SDK / transport exceptions onto the pipeline's error taxonomy."""
    if isinstance(exc, GradingServiceError):
        return exc
    if isinstance(exc, _CONFIG_GOOGLE_ERRORS):
        return ServiceConfigurationError(f"Gemini rejected the credentials: {exc}")
    if isinstance(exc, _TRANSIENT_GOOGLE_ERRORS) or is_network_error(exc):
        return TransientServiceError(f"Gemini call failed (network): {exc}")
    message = str(exc).lower()
    if "api key" in message or "api_key" in message:
        return ServiceConfigurationError(f"Gemini rejected the API key: {exc}")
    if any(hint in message for hint in _NETWORK_MESSAGE_HINTS):
        return TransientServiceError(f"Gemini call failed (network): {exc}")
    return exc


class GradingModelClient(ABC):
    """The three remote capabilities the pipeline consumes."""

    @abstractmethod
    def detect_page_number(self, image_bytes: bytes, mime_type: str) -> Optional[int]:
        """Printed page number of one page, or None if there is none."""

    @abstractmethod
    def extract_handwriting(
        self,
        image_bytes: bytes,
        mime_type: str,
        page_hint: int,
        total_pages: int,
    ) -> str:
        """Student-handwritten content of one page."""

    @abstractmethod
    def grade(self, student_text: str, mark_scheme_text: str, total_marks: int) -> str:
        """Raw model text, expected to parse as the grading JSON."""


class GeminiClient(GradingModelClient):
    def __init__(
        self,
        api_key: Optional[str],
        *,
        page_model: str = "gemini-2.0-flash-lite",
        extraction_model: str = "gemini-2.5-flash",
        grading_model: str = "gemini-2.5-flash",
        timeout: float = 120.0,
    ):
        self._api_key = api_key
        self.page_model = page_model
        self.extraction_model = extraction_model
        self.grading_model = grading_model
        self.timeout = timeout
        self._models: dict[str, genai.GenerativeModel] = {}
        self._lock = threading.Lock()
        self._configured = False

    def _ensure_configured(self) -> None:
        if self._configured:
            return
        if not self._api_key:
            raise ServiceConfigurationError("GEMINI_API_KEY is not configured")
        genai.configure(api_key=self._api_key)
        self._configured = True
        logger.info("Gemini client configured")

    def _model(self, name: str) -> genai.GenerativeModel:
        # detection runs on several threads at once
        with self._lock:
            self._ensure_configured()
            if name not in self._models:
                self._models[name] = genai.GenerativeModel(
                    model_name=name,
                    generation_config={"temperature": 0},
                )
            return self._models[name]

    def _generate(self, model_name: str, contents: list) -> str:
        model = self._model(model_name)
        try:
            response = model.generate_content(
                contents,
                request_options={"timeout": self.timeout},
            )
        except Exception as e:
            raise translate_exception(e) from e

        try:
            return (response.text or "").strip()
        except ValueError as e:
            # .text raises when the candidate was blocked or has no parts
            logger.warning(f"Gemini returned no text ({model_name}): {e}")
            return ""

    @staticmethod
    def _image_part(image_bytes: bytes, mime_type: str) -> dict:
        return {"mime_type": mime_type or "image/jpeg", "data": image_bytes}

    def detect_page_number(self, image_bytes: bytes, mime_type: str) -> Optional[int]:
        raw = self._generate(
            self.page_model,
            [PAGE_NUMBER_PROMPT, self._image_part(image_bytes, mime_type)],
        )
        return parse_page_number(raw)

    def extract_handwriting(
        self,
        image_bytes: bytes,
        mime_type: str,
        page_hint: int,
        total_pages: int,
    ) -> str:
        return self._generate(
            self.extraction_model,
            [handwriting_prompt(page_hint, total_pages), self._image_part(image_bytes, mime_type)],
        )

    def grade(self, student_text: str, mark_scheme_text: str, total_marks: int) -> str:
        return self._generate(
            self.grading_model,
            [grading_prompt(student_text, mark_scheme_text, total_marks)],
        )
