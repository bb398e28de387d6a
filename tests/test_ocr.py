"""
Unit tests for OCR block building and the classification/extraction stage
"""
import pytest

from homework_marker.core import CollaboratorError, ErrorCategory
from homework_marker.pipeline.models import ClassificationResult, Page
from homework_marker.pipeline.ocr import (
    OcrStage,
    build_math_blocks,
    fallback_context,
    is_suspicious,
    score_math_likeness,
)
from homework_marker.pipeline.pool import WorkerPool

from conftest import FakeClassifier, FakeExtractor, make_png


def pages(count):
    return [Page(page_index=i, image=make_png(), original_file_name=f"{i}.png") for i in range(count)]


class TestMathHeuristics:
    """Test cases for math-likeness scoring"""

    def test_maths_scores_higher_than_prose(self):
        assert score_math_likeness("2x + 3y = 12") > score_math_likeness("the answer is below")

    def test_bounds(self):
        assert score_math_likeness("") == 0.0
        assert 0.0 <= score_math_likeness("√(x^2) = |x| + π × 3 ÷ 4 = 5 = 6") <= 1.0

    def test_suspicious(self):
        assert is_suspicious("x | 3")
        assert is_suspicious("+ - = *")
        assert not is_suspicious("|x| = 3")


class TestBuildMathBlocks:
    """Test cases for build_math_blocks"""

    def test_ids_and_boxes(self):
        blocks = build_math_blocks(2, [
            {"text": "2x = 4", "bbox": [10, 20, 30, 40], "confidence": 0.9},
            {"latex": "x = 2", "bbox": {"x": 1, "y": 2, "width": 3, "height": 4}},
        ])

        assert [b.block_id for b in blocks] == ["p2_ocr_0", "p2_ocr_1"]
        assert blocks[0].coordinates.width == 30
        assert blocks[1].coordinates.y == 2
        assert blocks[1].text == "x = 2"
        assert blocks[0].primary_confidence == pytest.approx(0.9)

    def test_confidence_clamped(self):
        blocks = build_math_blocks(0, [{"text": "1", "confidence": 7}, {"text": "2", "confidence": "n/a"}])
        assert blocks[0].primary_confidence == 1.0
        assert blocks[1].primary_confidence == 0.0


class TestOcrStage:
    """Test cases for OcrStage"""

    async def test_classifies_once_and_extracts_every_page(self):
        classifier = FakeClassifier(ClassificationResult(question_text="Solve 2x = 4", question_number="5"))
        extractor = FakeExtractor({
            0: [{"text": "2x = 4", "bbox": [0, 0, 10, 10]}],
            2: [{"text": "x = 2", "bbox": [0, 0, 10, 10]}],
        })

        classification, blocks_per_page = await OcrStage(classifier, extractor, WorkerPool(3)).run(pages(3))

        assert classifier.calls == 1
        assert classification.question_number == "5"
        assert [len(b) for b in blocks_per_page] == [1, 0, 1]
        assert blocks_per_page[2][0].page_index == 2
        assert extractor.contexts == ["Solve 2x = 4"] * 3

    async def test_classify_without_extracting(self):
        classifier = FakeClassifier(ClassificationResult(question_text="Solve 2x = 4", question_only=True))
        extractor = FakeExtractor()

        classification = await OcrStage(classifier, extractor, WorkerPool(2)).classify(pages(2))

        assert classification.question_only is True
        assert extractor.contexts == []

    async def test_classification_failure(self):
        stage = OcrStage(FakeClassifier(error=RuntimeError("401 Unauthorized")), FakeExtractor(), WorkerPool(2))
        with pytest.raises(CollaboratorError) as exc_info:
            await stage.run(pages(1))
        assert exc_info.value.category == ErrorCategory.AUTH

    async def test_extraction_failure(self):
        stage = OcrStage(FakeClassifier(), FakeExtractor(error=ConnectionError("reset")), WorkerPool(2))
        with pytest.raises(CollaboratorError) as exc_info:
            await stage.run(pages(2))
        assert exc_info.value.collaborator == "Text extraction"


class TestHints:
    """Test cases for detection inputs derived from OCR"""

    def test_fallback_context(self):
        blocks = [build_math_blocks(0, [{"text": "a = 1"}]), build_math_blocks(1, [{"text": "b = 2"}])]
        assert fallback_context(blocks) == "a = 1 b = 2"
