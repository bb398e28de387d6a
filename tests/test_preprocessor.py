"""
Unit tests for page preprocessing
"""
import pytest

from homework_marker.core import PreprocessingError
from homework_marker.pipeline.image_processing import decode_image, enhance_page
from homework_marker.pipeline.models import Page
from homework_marker.pipeline.pool import WorkerPool
from homework_marker.pipeline.preprocessor import Preprocessor, preprocess_page

from conftest import make_png


class TestPreprocessPage:
    """Test cases for preprocess_page"""

    def test_replaces_image_keeps_original(self):
        data = make_png(width=90, height=70)
        page = Page(page_index=0, image=data, original_file_name="a.png", width=90, height=70)

        preprocess_page(page)

        assert page.original_image is data
        assert page.image != data
        assert page.content_type == "image/png"
        assert decode_image(page.image).shape[:2] == (70, 90)

    def test_backfills_dimensions(self):
        page = Page(page_index=1, image=make_png(width=90, height=70), original_file_name="b.png")
        preprocess_page(page)
        assert (page.width, page.height) == (90, 70)

    def test_undecodable(self):
        page = Page(page_index=4, image=b"garbage", original_file_name="c.png")
        with pytest.raises(PreprocessingError) as exc_info:
            preprocess_page(page)
        assert exc_info.value.page_index == 4


class TestEnhancePage:
    """Test cases for enhance_page"""

    def test_preserves_shape(self):
        img = decode_image(make_png(width=64, height=48))
        assert enhance_page(img).shape == img.shape


class TestPreprocessor:
    """Test cases for Preprocessor"""

    async def test_processes_all_pages(self):
        pages = [Page(page_index=i, image=make_png(), original_file_name=f"{i}.png") for i in range(3)]
        await Preprocessor(WorkerPool(2)).process(pages)
        assert all(p.has_dimensions for p in pages)

    async def test_failure_names_page(self):
        pages = [
            Page(page_index=0, image=make_png(), original_file_name="0.png"),
            Page(page_index=1, image=b"garbage", original_file_name="1.png"),
        ]
        with pytest.raises(PreprocessingError) as exc_info:
            await Preprocessor(WorkerPool(2)).process(pages)
        assert exc_info.value.page_index == 1
