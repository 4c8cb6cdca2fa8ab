import pytest

from scriptgrader.core.errors import ServiceConfigurationError, TransientServiceError
from scriptgrader.services.handwriting import HandwritingExtractor, error_placeholder
from scriptgrader.services.page_order import PageImage
from scriptgrader.services.prompts import BLANK_MARKER
from tests.fakes import FakeClient


def _pages(*names):
    return [PageImage(data=name.encode()) for name in names]


class TestHandwritingExtractor:
    def test_pages_are_joined_with_headers(self):
        client = FakeClient(handwriting={b"p1": "x = 4", b"p2": "  y = 2\n"})

        result = HandwritingExtractor(client).extract_handwritten(_pages("p1", "p2"))

        assert result.text == "--- Page 1 ---\nx = 4\n\n--- Page 2 ---\ny = 2"
        assert result.failed_pages == []
        # page hint and total go to every call, in page order
        assert [(hint, total) for _, hint, total in client.extract_calls] == [(1, 2), (2, 2)]

    def test_failed_middle_page_gets_placeholder(self):
        client = FakeClient(
            handwriting={
                b"p1": "answer one",
                b"p2": TransientServiceError("connection reset"),
                b"p3": "answer three",
            }
        )

        result = HandwritingExtractor(client).extract_handwritten(_pages("p1", "p2", "p3"))

        assert result.failed_pages == [2]
        assert "answer one" in result.text
        assert "answer three" in result.text
        assert f"--- Page 2 ---\n{error_placeholder(2)}" in result.text
        assert result.text.index("answer one") < result.text.index("answer three")

    def test_empty_page_gets_blank_marker(self):
        client = FakeClient(handwriting={b"p1": "", b"p2": "answer"})

        result = HandwritingExtractor(client).extract_handwritten(_pages("p1", "p2"))

        assert result.pages[0] == BLANK_MARKER
        assert result.text.startswith(f"--- Page 1 ---\n{BLANK_MARKER}")

    def test_all_pages_failing_raises(self):
        client = FakeClient(
            handwriting={
                b"p1": TransientServiceError("timeout"),
                b"p2": TransientServiceError("timeout"),
            }
        )

        with pytest.raises(TransientServiceError):
            HandwritingExtractor(client).extract_handwritten(_pages("p1", "p2"))

    def test_configuration_error_is_not_hidden_by_placeholders(self):
        client = FakeClient(
            handwriting={
                b"p1": "answer",
                b"p2": ServiceConfigurationError("GEMINI_API_KEY is not configured"),
            }
        )

        with pytest.raises(ServiceConfigurationError):
            HandwritingExtractor(client).extract_handwritten(_pages("p1", "p2"))
