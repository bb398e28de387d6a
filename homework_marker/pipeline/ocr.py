"""
OCR & Classification Stage
Global question-context classification followed by parallel per-page extraction
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from ..core.exceptions import CollaboratorError
from .models import BoundingBox, ClassificationResult, MathBlock, Page
from .pool import WorkerPool

logger = logging.getLogger(__name__)


# Features that make a line of text look like mathematics
_MATH_FEATURES = [
    re.compile(r"[=≠≈≤≥]"),
    re.compile(r"[+\-×÷*/]"),
    re.compile(r"\b\d+\b"),
    re.compile(r"[()\[\]{}]"),
    re.compile(r"\|.*\|"),
    re.compile(r"√|∑|∫|π|θ|λ|\\frac|\\sqrt"),
    re.compile(r"\b\w\^\d"),
]
_SYMBOL = re.compile(r"[^a-zA-Z0-9\s]")
_OPERATOR = re.compile(r"[+\-×÷*/=]")


def score_math_likeness(text: str) -> float:
    """
    Heuristic score in [0, 1] of how mathematical a piece of text looks.

    Each feature contributes up to 1 (saturating at three occurrences),
    plus the density of non-alphanumeric symbols; the sum is scaled by 1/4.
    """
    if not text or not text.strip():
        return 0.0

    score = 0.0
    for pattern in _MATH_FEATURES:
        count = len(pattern.findall(text))
        score += min(1.0, count / 3)

    density = len(_SYMBOL.findall(text)) / max(8, len(text))
    score += density
    return max(0.0, min(1.0, score / 4))


def is_suspicious(text: str) -> bool:
    """A lone pipe, or several operators with no digits at all"""
    pipes = text.count("|")
    operators = len(_OPERATOR.findall(text))
    return pipes == 1 or (operators > 2 and not re.search(r"\d", text))


def _clamp_confidence(value: Any) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


def build_math_blocks(page_index: int, raw_blocks: List[Dict[str, Any]]) -> List[MathBlock]:
    """
    Turn raw extraction output for one page into MathBlocks.

    Args:
        page_index: Page the blocks came from
        raw_blocks: Dicts with `text`, `latex`, `confidence`,
            `latex_confidence` and `bbox` ([x, y, w, h] or a dict)

    Returns:
        MathBlocks with ids `p{page}_ocr_{idx}`
    """
    blocks = []
    for idx, raw in enumerate(raw_blocks):
        primary = str(raw.get("text") or "").strip()
        latex = str(raw.get("latex") or "").strip()
        bbox = raw.get("bbox") or raw.get("coordinates") or [0, 0, 0, 0]
        if isinstance(bbox, dict):
            box = BoundingBox(
                x=float(bbox.get("x", 0)),
                y=float(bbox.get("y", 0)),
                width=float(bbox.get("width", 0)),
                height=float(bbox.get("height", 0)),
            )
        else:
            x, y, w, h = (list(bbox) + [0, 0, 0, 0])[:4]
            box = BoundingBox(x=float(x), y=float(y), width=float(w), height=float(h))

        sample = latex or primary
        blocks.append(MathBlock(
            block_id=f"p{page_index}_ocr_{idx}",
            page_index=page_index,
            coordinates=box,
            primary_text=primary,
            latex_text=latex,
            primary_confidence=_clamp_confidence(raw.get("confidence", 0.6)),
            latex_confidence=_clamp_confidence(raw.get("latex_confidence", raw.get("confidence", 0.6))),
            math_likeness=score_math_likeness(sample),
            suspicious=is_suspicious(sample),
        ))
    return blocks


class QuestionClassifier(ABC):
    """Reads the question context from one page"""

    @abstractmethod
    async def classify(self, page: Page) -> ClassificationResult:
        pass


class TextExtractor(ABC):
    """Extracts positioned text blocks from one page"""

    @abstractmethod
    async def extract(self, page: Page, context: str) -> List[MathBlock]:
        """
        Args:
            page: Preprocessed page
            context: Global question-context text shared by all pages

        Returns:
            Blocks in pixel coordinates of the page
        """
        pass


class OcrStage:
    """
    Runs classification once, then extraction across all pages.
    """

    def __init__(
        self,
        classifier: QuestionClassifier,
        extractor: TextExtractor,
        pool: WorkerPool,
    ):
        self.classifier = classifier
        self.extractor = extractor
        self.pool = pool

    async def classify(self, pages: List[Page]) -> ClassificationResult:
        """
        Read the global question context from the first page.

        Raises:
            CollaboratorError: If the classification call fails
        """
        try:
            classification = await self.pool.run(self.classifier.classify, pages[0])
        except Exception as e:
            logger.error(f"Question classification failed: {e}")
            raise CollaboratorError("Question classification", e) from e

        logger.info(
            f"Classified submission: question={classification.question_number!r}, "
            f"paper={classification.paper_code!r}, "
            f"question_only={classification.question_only}, "
            f"context_chars={len(classification.question_text)}"
        )
        return classification

    async def extract(self, pages: List[Page], context: str) -> List[List[MathBlock]]:
        """
        Extract every page concurrently with the shared question context.

        Returns:
            Blocks per page, in page order

        Raises:
            CollaboratorError: If any extraction call fails
        """
        async def extract_page(page: Page) -> List[MathBlock]:
            return await self.extractor.extract(page, context)

        results = await self.pool.map(extract_page, pages, return_exceptions=True)

        blocks_per_page: List[List[MathBlock]] = []
        for page, result in zip(pages, results):
            if isinstance(result, BaseException):
                logger.error(f"Text extraction failed on page {page.page_index}: {result}")
                raise CollaboratorError("Text extraction", result) from result
            blocks_per_page.append(list(result))

        total = sum(len(b) for b in blocks_per_page)
        logger.info(f"Extracted {total} blocks from {len(pages)} page(s)")
        return blocks_per_page

    async def run(self, pages: List[Page]) -> Tuple[ClassificationResult, List[List[MathBlock]]]:
        """
        Classify the first page and extract every page.

        Returns:
            (classification, blocks per page in page order)
        """
        classification = await self.classify(pages)
        return classification, await self.extract(pages, classification.question_text)


def fallback_context(blocks_per_page: List[List[MathBlock]]) -> str:
    """Concatenate all extracted text when classification returned none"""
    parts = []
    for blocks in blocks_per_page:
        for block in blocks:
            if block.text:
                parts.append(block.text)
    return " ".join(parts)
