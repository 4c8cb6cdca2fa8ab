import io

import pytest
from PIL import Image

from scriptgrader.core.errors import ImageStorageError
from scriptgrader.services.imaging import normalize_orientation
from scriptgrader.services.page_order import PageImage
from scriptgrader.services.storage import build_filename, mime_type_from_name


def _image_bytes(width, height, fmt="PNG"):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(255, 255, 255)).save(buffer, format=fmt)
    return buffer.getvalue()


class TestLocalImageStorage:
    def test_save_and_load(self, storage):
        url = storage.save(b"page-bytes", "7-3-1700000000000-0.png")

        assert url == "/uploads/7-3-1700000000000-0.png"
        assert storage.exists(url)
        page = storage.load(url)
        assert page.data == b"page-bytes"
        assert page.mime_type == "image/png"
        assert page.url == url

    def test_missing_file(self, storage):
        assert not storage.exists("/uploads/nope.jpg")
        with pytest.raises(ImageStorageError):
            storage.load("/uploads/nope.jpg")

    @pytest.mark.parametrize("url", ["/elsewhere/a.jpg", "/uploads/../secret", "/uploads/a/b.jpg", "/uploads/"])
    def test_rejects_foreign_or_traversing_urls(self, storage, url):
        assert not storage.exists(url)
        with pytest.raises(ImageStorageError):
            storage.load(url)


class TestNaming:
    def test_build_filename(self):
        name = build_filename(7, 3, "IMG_001.JPG", 2)
        student, assessment, timestamp, rest = name.split("-")
        assert (student, assessment) == ("7", "3")
        assert timestamp.isdigit()
        assert rest == "2.jpg"

    def test_build_filename_without_extension(self):
        assert build_filename(1, 2, "", 0).endswith("-0.jpg")

    @pytest.mark.parametrize(
        "name, mime",
        [("a.png", "image/png"), ("a.JPEG", "image/jpeg"), ("a.webp", "image/webp"), ("a.heic", "image/jpeg")],
    )
    def test_mime_type_from_name(self, name, mime):
        assert mime_type_from_name(name) == mime


class TestNormalizeOrientation:
    def test_landscape_becomes_portrait_jpeg(self):
        page = PageImage(data=_image_bytes(400, 200), mime_type="image/png", url="/uploads/a.png")

        result = normalize_orientation(page)

        assert result.mime_type == "image/jpeg"
        assert result.url == "/uploads/a.png"
        with Image.open(io.BytesIO(result.data)) as image:
            assert image.format == "JPEG"
            assert image.size == (200, 400)

    def test_portrait_keeps_dimensions(self):
        result = normalize_orientation(PageImage(data=_image_bytes(200, 400)))
        with Image.open(io.BytesIO(result.data)) as image:
            assert image.size == (200, 400)

    def test_unreadable_image_keeps_original_bytes(self):
        page = PageImage(data=b"not an image", mime_type="image/jpeg")
        assert normalize_orientation(page) is page
