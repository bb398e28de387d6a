"""
Preprocessor Module
Per-page image cleanup before text extraction
"""
import asyncio
import logging
from typing import List

from ..core.exceptions import PreprocessingError
from .image_processing import decode_image, encode_png, enhance_page
from .models import Page
from .pool import WorkerPool

logger = logging.getLogger(__name__)


def preprocess_page(page: Page) -> Page:
    """
    Enhance one page in place.

    Replaces the page's image payload with the enhanced PNG and backfills
    missing dimensions from the decoded raster.

    Raises:
        PreprocessingError: If the page cannot be decoded or encoded
    """
    img = decode_image(page.image)
    if img is None:
        raise PreprocessingError(page.page_index, "image could not be decoded")

    height, width = img.shape[:2]
    if not page.has_dimensions:
        logger.info(f"Backfilled dimensions for page {page.page_index}: {width}x{height}")
        page.width, page.height = width, height

    try:
        page.image = encode_png(enhance_page(img))
    except Exception as e:
        raise PreprocessingError(page.page_index, str(e)) from e
    page.content_type = "image/png"
    return page


class Preprocessor:
    """Runs page enhancement across all pages on worker threads"""

    def __init__(self, pool: WorkerPool):
        self.pool = pool

    async def process(self, pages: List[Page]) -> List[Page]:
        """
        Preprocess every page concurrently.

        The first page-level failure is re-raised once all pages settled.
        """
        async def run(page: Page) -> Page:
            return await asyncio.to_thread(preprocess_page, page)

        results = await self.pool.map(run, pages, return_exceptions=True)
        for page, result in zip(pages, results):
            if isinstance(result, BaseException):
                if isinstance(result, PreprocessingError):
                    raise result
                raise PreprocessingError(page.page_index, str(result)) from result
        return results
