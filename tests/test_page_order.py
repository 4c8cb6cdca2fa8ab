from scriptgrader.core.errors import TransientServiceError
from scriptgrader.services.execution import ParallelStrategy, SequentialStrategy
from scriptgrader.services.page_order import (
    PageImage,
    PageOrderResolver,
    is_consecutive,
    order_by_page_numbers,
)
from tests.fakes import FakeClient


def _pages(*names):
    return [PageImage(data=name.encode(), url=f"/uploads/{name}.jpg") for name in names]


class TestOrderByPageNumbers:
    def test_consecutive_numbers_are_sorted(self):
        assert order_by_page_numbers([3, 1, 2]) == ([1, 2, 0], False)

    def test_non_consecutive_numbers_keep_upload_order(self):
        # 2, 5, 9 looks like question numbers, not page numbers
        assert order_by_page_numbers([2, 5, 9]) == ([0, 1, 2], True)

    def test_consecutive_run_need_not_start_at_one(self):
        assert order_by_page_numbers([4, 3]) == ([1, 0], False)

    def test_unknown_pages_go_last_in_upload_order(self):
        assert order_by_page_numbers([None, 2, None, 1]) == ([3, 1, 0, 2], False)

    def test_no_numbers_at_all(self):
        assert order_by_page_numbers([None, None]) == ([0, 1], False)

    def test_duplicate_numbers_are_not_consecutive(self):
        assert not is_consecutive([1, 1, 2])
        assert order_by_page_numbers([1, 1, 2]) == ([0, 1, 2], True)


class TestPageOrderResolver:
    def test_single_page_makes_no_call(self):
        client = FakeClient()
        order = PageOrderResolver(client).resolve_order(_pages("a"))

        assert order.ordered_indices == [0]
        assert client.detect_calls == []

    def test_no_pages(self):
        order = PageOrderResolver(FakeClient()).resolve_order([])
        assert order.ordered_indices == []
        assert order.ordered_images == []

    def test_reorders_pages_by_detected_number(self):
        client = FakeClient(page_numbers={b"a": 3, b"b": 1, b"c": 2})
        pages = _pages("a", "b", "c")

        order = PageOrderResolver(client, strategy=ParallelStrategy(max_workers=3)).resolve_order(pages)

        assert order.ordered_indices == [1, 2, 0]
        assert [p.url for p in order.ordered_images] == [
            "/uploads/b.jpg",
            "/uploads/c.jpg",
            "/uploads/a.jpg",
        ]
        assert order.detected_numbers == [3, 1, 2]
        assert not order.used_fallback

    def test_failed_detection_is_treated_as_unknown(self):
        client = FakeClient(
            page_numbers={b"a": TransientServiceError("reset"), b"b": 2, b"c": 1}
        )

        order = PageOrderResolver(client, strategy=SequentialStrategy()).resolve_order(
            _pages("a", "b", "c")
        )

        assert order.detected_numbers == [None, 2, 1]
        assert order.ordered_indices == [2, 1, 0]

    def test_non_consecutive_detection_falls_back(self):
        client = FakeClient(page_numbers={b"a": 2, b"b": 5, b"c": 9})

        order = PageOrderResolver(client).resolve_order(_pages("a", "b", "c"))

        assert order.used_fallback
        assert order.ordered_indices == [0, 1, 2]
        assert len(client.detect_calls) == 3
