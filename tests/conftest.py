"""
Shared fixtures: in-memory collaborators and sample corpus data
"""
import asyncio
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import pytest

from homework_marker.pipeline import (
    ClassificationResult,
    ImageStore,
    PdfRasterizer,
    QuestionClassifier,
    ScoringCollaborator,
    TextExtractor,
    UploadedFile,
)
from homework_marker.pipeline.ocr import build_math_blocks
from homework_marker.services.exam_corpus import JsonExamCorpus


def make_png(width: int = 120, height: int = 160, value: int = 255) -> bytes:
    img = np.full((height, width, 3), value, dtype=np.uint8)
    cv2.rectangle(img, (10, 10), (width // 2, height // 3), (40, 40, 40), 2)
    ok, buffer = cv2.imencode(".png", img)
    assert ok
    return buffer.tobytes()


SAMPLE_CORPUS: Dict[str, Any] = {
    "exam_papers": [
        {
            "metadata": {
                "exam_board": "Pearson Edexcel",
                "exam_code": "1MA1/1H",
                "tier": "Higher",
                "exam_series": "June 2022",
            },
            "questions": [
                {
                    "question_number": "3",
                    "question_text": "",
                    "marks": 4,
                    "sub_questions": [
                        {"question_part": "a", "question_text": "Expand and simplify (x + 5)(x - 3)", "marks": 2},
                        {"question_part": "b", "question_text": "Factorise fully 6x^2 + 9x", "marks": 2},
                    ],
                },
                {
                    "question_number": "12",
                    "question_text": "Work out the value of 27^(2/3). Give your answer as an integer.",
                    "marks": 2,
                },
                {
                    "question_number": "21",
                    "question_text": "Solve the simultaneous equations 2x + 3y = 12 and 5x - 2y = 11",
                    "marks": 5,
                },
            ],
        },
        {
            "metadata": {
                "exam_board": "AQA",
                "exam_code": "8300/2F",
                "tier": "Foundation",
                "exam_series": "November 2021",
            },
            "questions": [
                {
                    "question_number": "7",
                    "question_text": "Work out the area of a rectangle with length 8 cm and width 5 cm",
                    "marks": 2,
                },
            ],
        },
    ],
    "marking_schemes": [
        {
            "exam_details": {"paper_code": "1MA1/1H"},
            "questions": {
                "3a": {
                    "marks": [
                        {"mark": "M1", "answer": "x^2 - 3x + 5x - 15"},
                        {"mark": "A1", "answer": "x^2 + 2x - 15"},
                    ],
                    "answer": "x^2 + 2x - 15",
                },
                "3b": {
                    "marks": [
                        {"mark": "M1", "answer": "partial factorisation"},
                        {"mark": "A1", "answer": "3x(2x + 3)"},
                    ],
                    "answer": "3x(2x + 3)",
                },
                "12": {
                    "marks": [{"mark": "M1", "answer": "cube root"}, {"mark": "A1", "answer": "9"}],
                    "answer": "9",
                },
                "21alt": {
                    "marks": [
                        {"mark": "M1", "answer": "eliminate one variable"},
                        {"mark": "M1", "answer": "substitute"},
                        {"mark": "A1", "answer": "x = 3"},
                        {"mark": "A1", "answer": "y = 2"},
                        {"mark": "B1", "answer": "check"},
                    ],
                    "answer": "x = 3, y = 2",
                },
            },
        },
    ],
}

Q21_TEXT = "Solve the simultaneous equations 2x + 3y = 12 and 5x - 2y = 11"


class FakeRasterizer(PdfRasterizer):
    def __init__(self, pages: List[bytes]):
        self.pages = pages

    async def rasterize(self, data: bytes) -> List[bytes]:
        return list(self.pages)


class FakeClassifier(QuestionClassifier):
    def __init__(self, result: Optional[ClassificationResult] = None, error: Exception = None):
        self.result = result or ClassificationResult()
        self.error = error
        self.calls = 0

    async def classify(self, page):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class FakeExtractor(TextExtractor):
    """Returns canned raw blocks per page index"""

    def __init__(self, raw_by_page: Dict[int, List[Dict[str, Any]]] = None, error: Exception = None):
        self.raw_by_page = raw_by_page or {}
        self.error = error
        self.contexts: List[str] = []

    async def extract(self, page, context):
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        # Finish out of page order
        await asyncio.sleep(0.001 * (5 - page.page_index % 5))
        return build_math_blocks(page.page_index, self.raw_by_page.get(page.page_index, []))


class FakeScorer(ScoringCollaborator):
    def __init__(self, responses: Dict[str, Any] = None, default: Any = None, delay: float = 0.0):
        self.responses = responses or {}
        self.default = default
        self.delay = delay
        self.tasks = []

    async def score(self, task):
        self.tasks.append(task)
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.get(task.question_number, self.default)
        if isinstance(response, Exception):
            raise response
        if response is None:
            return {"awarded_marks": 0, "feedback": "", "annotations": []}
        return response


class MemoryImageStore(ImageStore):
    def __init__(self, error: Exception = None, delay: float = 0.0):
        self.saved: Dict[str, bytes] = {}
        self.error = error
        self.delay = delay

    async def save(self, submission_id, name, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        ref = f"memory://{submission_id}/{name}"
        self.saved[ref] = data
        return ref


def image_upload(name: str = "page.png", data: bytes = None) -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", data=data or make_png())


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def corpus():
    return JsonExamCorpus(SAMPLE_CORPUS)


@pytest.fixture
def image_store():
    return MemoryImageStore()
