"""
Annotation Renderer
Burns marking annotations onto the original page images
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Tuple

import cv2
import numpy as np

from ..core.constants import AnnotationKind, CoordinateUnit
from .image_processing import decode_image, encode_png
from .models import BoundingBox, EnrichedAnnotation, Page, QuestionResult, format_marks
from .pool import WorkerPool

logger = logging.getLogger(__name__)

RED = (0, 0, 220)


def to_pixel_box(annotation: EnrichedAnnotation, width: int, height: int) -> BoundingBox:
    """
    Convert an annotation box to pixel coordinates of a page.

    Pixel is the canonical unit everywhere upstream; fractional (0-1) and
    percentage (0-100) boxes are only converted here.
    """
    box = annotation.coordinates
    if annotation.unit == CoordinateUnit.PIXEL:
        return box
    divisor = 100.0 if annotation.unit == CoordinateUnit.PERCENT else 1.0
    return BoundingBox(
        x=box.x / divisor * width,
        y=box.y / divisor * height,
        width=box.width / divisor * width,
        height=box.height / divisor * height,
    )


def group_by_page(results: List[QuestionResult]) -> Dict[int, List[EnrichedAnnotation]]:
    grouped: Dict[int, List[EnrichedAnnotation]] = defaultdict(list)
    for result in results:
        for annotation in result.annotations:
            grouped[annotation.page_index].append(annotation)
    return grouped


def total_score(results: List[QuestionResult]) -> Tuple[float, float]:
    awarded = sum(r.score.awarded_marks for r in results)
    total = sum(r.score.total_marks for r in results)
    return awarded, total


class OverlayPainter:
    """
    Draws ticks, crosses, comments and scores on one BGR image.

    Sizes are defined for a page 2400 px tall and scaled to the image.
    """

    def __init__(self, img: np.ndarray, reference_height: int = 2400):
        self.img = img
        self.height, self.width = img.shape[:2]
        self.scale = max(self.height / float(reference_height), 0.25)
        self.thickness = max(1, int(round(6 * self.scale)))
        self.font_scale = 1.6 * self.scale

    def _clamp_point(self, x: float, y: float) -> Tuple[int, int]:
        return (
            int(min(max(x, 0), self.width - 1)),
            int(min(max(y, 0), self.height - 1)),
        )

    def _anchor(self, box: BoundingBox) -> Tuple[float, float, float]:
        """Symbol anchor just right of the box, vertically centred"""
        size = 40 * self.scale
        x = box.x + box.width + 15 * self.scale
        if x + size * 3 > self.width:
            x = max(box.x - size * 3, 0)
        y = box.y + box.height / 2.0
        return x, y, size

    def text(self, text: str, x: float, y: float, color=RED) -> None:
        cv2.putText(
            self.img, text, self._clamp_point(x, y), cv2.FONT_HERSHEY_SIMPLEX,
            self.font_scale, color, self.thickness, cv2.LINE_AA
        )

    def tick(self, box: BoundingBox, label: str = "") -> None:
        x, y, size = self._anchor(box)
        pts = [
            self._clamp_point(x, y),
            self._clamp_point(x + size * 0.4, y + size * 0.5),
            self._clamp_point(x + size, y - size * 0.6),
        ]
        cv2.polylines(self.img, [np.array(pts, dtype=np.int32)], False, RED, self.thickness, cv2.LINE_AA)
        if label:
            self.text(label, x + size * 1.2, y + size * 0.3)

    def cross(self, box: BoundingBox, label: str = "") -> None:
        x, y, size = self._anchor(box)
        half = size / 2.0
        cv2.line(self.img, self._clamp_point(x, y - half), self._clamp_point(x + size, y + half),
                 RED, self.thickness, cv2.LINE_AA)
        cv2.line(self.img, self._clamp_point(x, y + half), self._clamp_point(x + size, y - half),
                 RED, self.thickness, cv2.LINE_AA)
        if label:
            self.text(label, x + size * 1.2, y + size * 0.3)

    def comment(self, box: BoundingBox, text: str) -> None:
        self.text(text, box.x, box.y + box.height + 40 * self.scale)

    def score_circle(self, text: str) -> None:
        radius = int(70 * self.scale)
        margin = int(40 * self.scale)
        center = (self.width - radius - margin, radius + margin)
        cv2.circle(self.img, center, radius, RED, self.thickness, cv2.LINE_AA)
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, self.font_scale, self.thickness)
        self.text(text, center[0] - tw / 2.0, center[1] + th / 2.0)

    def total(self, text: str) -> None:
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, self.font_scale * 1.2, self.thickness)
        margin = 60 * self.scale
        x = self.width - tw - margin
        y = self.height - margin
        cv2.putText(
            self.img, text, self._clamp_point(x, y), cv2.FONT_HERSHEY_SIMPLEX,
            self.font_scale * 1.2, RED, self.thickness, cv2.LINE_AA
        )
        underline_y = y + 12 * self.scale
        cv2.line(self.img, self._clamp_point(x, underline_y), self._clamp_point(x + tw, underline_y),
                 RED, self.thickness, cv2.LINE_AA)

    def draw(self, annotation: EnrichedAnnotation) -> None:
        box = to_pixel_box(annotation, self.width, self.height)
        if annotation.kind == AnnotationKind.MARK:
            self.tick(box, annotation.text)
        elif annotation.kind == AnnotationKind.CROSS:
            self.cross(box, annotation.text)
        elif annotation.kind == AnnotationKind.COMMENT:
            self.comment(box, annotation.text)
        elif annotation.kind == AnnotationKind.SCORE:
            self.score_circle(annotation.text)


def render_page(
    page: Page,
    annotations: List[EnrichedAnnotation],
    total_text: str = "",
    reference_height: int = 2400,
) -> bytes:
    """
    Render one page's overlay onto its original raster.

    Raises:
        ValueError: If the original image cannot be decoded or encoded
    """
    img = decode_image(page.original_image)
    if img is None:
        raise ValueError(f"page {page.page_index} original image could not be decoded")

    painter = OverlayPainter(img, reference_height)
    for annotation in annotations:
        painter.draw(annotation)
    if total_text:
        painter.score_circle(total_text)
        painter.total(f"Total: {total_text}")
    return encode_png(painter.img)


class AnnotationRenderer:
    """
    Renders every page that has something to draw; other pages pass
    through unchanged. A page that fails to render falls back to its
    original image.
    """

    def __init__(self, pool: WorkerPool, reference_height: int = 2400):
        self.pool = pool
        self.reference_height = reference_height

    async def render(self, pages: List[Page], results: List[QuestionResult]) -> List[bytes]:
        """
        Args:
            pages: Submission pages in order
            results: Question results whose annotations reference pages

        Returns:
            One encoded image per page, in page order
        """
        grouped = group_by_page(results)
        last_index = pages[-1].page_index if pages else -1
        awarded, total = total_score(results)
        total_text = f"{format_marks(awarded)}/{format_marks(total)}" if results else ""

        async def render_one(page: Page) -> bytes:
            annotations = grouped.get(page.page_index, [])
            page_total = total_text if page.page_index == last_index else ""
            if not annotations and not page_total:
                return page.original_image
            try:
                return await asyncio.to_thread(
                    render_page, page, annotations, page_total, self.reference_height
                )
            except Exception as e:
                logger.warning(
                    f"Rendering failed for page {page.page_index}, using original image: {e}"
                )
                return page.original_image

        rendered = await self.pool.map(render_one, pages, return_exceptions=True)
        output = []
        for page, image in zip(pages, rendered):
            if isinstance(image, BaseException):
                logger.warning(
                    f"Rendering did not finish for page {page.page_index}, using original image: {image!r}"
                )
                image = page.original_image
            output.append(image)
        return output
