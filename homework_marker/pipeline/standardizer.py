"""
Input Standardizer Module
Classifies the shape of a submission and converts it into ordered pages
"""
import asyncio
import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pdfplumber
from PIL import Image

from ..core.constants import FileLimits, InputType, Messages
from ..core.exceptions import InputValidationError, PageLimitError, StandardizationError
from ..utils import format_file_size
from .models import Page, UploadedFile
from .pool import WorkerPool

logger = logging.getLogger(__name__)

DimensionProbe = Callable[[bytes], Tuple[int, int]]

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}


def probe_dimensions(data: bytes) -> Tuple[int, int]:
    """
    Read pixel dimensions from an image header.

    Args:
        data: Encoded image bytes

    Returns:
        (width, height)

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except Exception as e:
        raise ValueError(f"unreadable image: {e}") from e
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid dimensions {width}x{height}")
    return width, height


def is_pdf(file: UploadedFile) -> bool:
    return (
        file.content_type == FileLimits.PDF_CONTENT_TYPE
        or Path(file.filename).suffix.lower() == ".pdf"
    )


def is_image(file: UploadedFile) -> bool:
    if file.content_type and file.content_type.startswith("image/"):
        return True
    return Path(file.filename).suffix.lower() in IMAGE_EXTENSIONS


def classify_input(files: List[UploadedFile]) -> InputType:
    """
    Decide which standardization path a submission takes.

    Args:
        files: Uploaded files in upload order

    Returns:
        InputType for the submission

    Raises:
        InputValidationError: Empty upload or an unsupported combination
    """
    if not files:
        raise InputValidationError(Messages.NO_FILES)
    if len(files) > FileLimits.MAX_UPLOAD_COUNT:
        raise InputValidationError(
            f"Too many files: {len(files)} (maximum {FileLimits.MAX_UPLOAD_COUNT})"
        )

    if len(files) == 1:
        if is_pdf(files[0]):
            return InputType.PDF
        if is_image(files[0]):
            return InputType.SINGLE_IMAGE
        raise InputValidationError(Messages.INVALID_COMBINATION)

    if all(is_image(f) and not is_pdf(f) for f in files):
        return InputType.MULTI_IMAGE
    raise InputValidationError(Messages.INVALID_COMBINATION)


def validate_file_sizes(files: List[UploadedFile]) -> None:
    for f in files:
        limit = FileLimits.MAX_PDF_SIZE if is_pdf(f) else FileLimits.MAX_IMAGE_SIZE
        if len(f.data) == 0:
            raise InputValidationError(f"File '{f.filename}' is empty")
        if len(f.data) > limit:
            raise InputValidationError(
                f"File '{f.filename}' is {format_file_size(len(f.data))}, "
                f"over the {format_file_size(limit)} limit"
            )


class PdfRasterizer(ABC):
    """Converts a PDF into one encoded raster image per page"""

    @abstractmethod
    async def rasterize(self, data: bytes) -> List[bytes]:
        pass


class PdfPlumberRasterizer(PdfRasterizer):
    """
    Rasterizes PDF pages with pdfplumber.
    """

    def __init__(self, resolution: int = 150):
        self.resolution = resolution

    def _rasterize_sync(self, data: bytes) -> List[bytes]:
        pages = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                pil = page.to_image(resolution=self.resolution).original.convert("RGB")
                buffer = io.BytesIO()
                pil.save(buffer, format="PNG")
                pages.append(buffer.getvalue())
        return pages

    async def rasterize(self, data: bytes) -> List[bytes]:
        return await asyncio.to_thread(self._rasterize_sync, data)


@dataclass
class StandardizedInput:
    """Output of standardization"""
    input_type: InputType
    pages: List[Page]
    original_input_type: str
    original_file_name: str


class Standardizer:
    """
    Turns 1..N uploaded files into an ordered list of pages with pixel
    dimensions.

    Paths:
    1. One PDF: rasterize every page, probe dimensions, fall back to 0x0
    2. One image: a single page
    3. Several images: probe each concurrently, drop unreadable files
    """

    def __init__(
        self,
        rasterizer: PdfRasterizer,
        pool: WorkerPool,
        max_pages: int = 20,
        probe: Optional[DimensionProbe] = None,
    ):
        self.rasterizer = rasterizer
        self.pool = pool
        self.max_pages = max_pages
        self.probe = probe or probe_dimensions

    async def standardize(self, files: List[UploadedFile]) -> StandardizedInput:
        """
        Standardize a submission.

        Args:
            files: Uploaded files in upload order

        Returns:
            StandardizedInput with at least one page

        Raises:
            InputValidationError: Bad combination, empty files or too many pages
            StandardizationError: No pages survived
        """
        input_type = classify_input(files)
        validate_file_sizes(files)

        if input_type == InputType.PDF:
            pages = await self._from_pdf(files[0])
            original_input_type = "pdf"
            if len(pages) == 1:
                # Single-page PDFs continue as single images but keep PDF metadata
                input_type = InputType.SINGLE_IMAGE
        else:
            pages = await self._from_images(files)
            original_input_type = "images"

        if not pages:
            raise StandardizationError(Messages.NO_PAGES)
        if len(pages) > self.max_pages:
            raise PageLimitError(len(pages), self.max_pages)

        logger.info(
            f"Standardized {len(files)} file(s) into {len(pages)} page(s) "
            f"via {input_type.value} path"
        )
        return StandardizedInput(
            input_type=input_type,
            pages=pages,
            original_input_type=original_input_type,
            original_file_name=files[0].filename if len(files) == 1 else "",
        )

    async def _from_pdf(self, file: UploadedFile) -> List[Page]:
        try:
            rasters = await self.rasterizer.rasterize(file.data)
        except Exception as e:
            logger.error(f"Failed to rasterize PDF {file.filename}: {e}")
            raise StandardizationError(f"Could not read PDF '{file.filename}'") from e

        if len(rasters) > self.max_pages:
            raise PageLimitError(len(rasters), self.max_pages)

        stem = Path(file.filename).stem
        pages = []
        for index, raster in enumerate(rasters):
            try:
                width, height = self.probe(raster)
            except Exception as e:
                logger.warning(
                    f"Could not determine dimensions of page {index} in {file.filename}: {e}; "
                    f"using 0x0"
                )
                width, height = 0, 0
            pages.append(Page(
                page_index=index,
                image=raster,
                original_file_name=f"{stem}-page-{index + 1}.png",
                width=width,
                height=height,
            ))
        return pages

    async def _from_images(self, files: List[UploadedFile]) -> List[Page]:
        async def measure(file: UploadedFile) -> Optional[Tuple[int, int]]:
            try:
                return await asyncio.to_thread(self.probe, file.data)
            except Exception as e:
                logger.warning(f"Dropping {file.filename}: {e}")
                return None

        sizes = await self.pool.map(measure, files)

        pages = []
        for file, size in zip(files, sizes):
            if size is None:
                continue
            pages.append(Page(
                page_index=len(pages),
                image=file.data,
                original_file_name=file.filename,
                width=size[0],
                height=size[1],
                content_type=file.content_type or "image/png",
            ))
        return pages
