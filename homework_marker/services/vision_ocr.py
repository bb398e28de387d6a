"""
Vision OCR Service
==================
Question classification and handwritten-work extraction via a
vision-capable chat model.
"""

import logging
from typing import Any, Dict, List

from ..pipeline.models import ClassificationResult, MathBlock, Page
from ..pipeline.ocr import QuestionClassifier, TextExtractor, build_math_blocks
from .llm_providers import BaseLLM, build_vision_messages

logger = logging.getLogger(__name__)


CLASSIFICATION_SYSTEM_PROMPT = """You are reading a photo of a student's maths homework.
Identify the printed exam question the student is answering.

Return a JSON object with exactly these keys:
- "question_text": the full printed question text, with any diagram described in [square brackets]
- "question_number": the printed question number including any part, e.g. "21" or "3b"; null if not visible
- "paper_code": the exam paper code if printed on the page, e.g. "1MA1/1H"; null if not visible
- "is_question_only": true if the page shows only the printed question with no handwritten working, otherwise false
Do not include the student's handwritten working."""

EXTRACTION_SYSTEM_PROMPT = """You are transcribing a student's handwritten maths working from a photo.
The question being answered is given for context only; do not transcribe it.

Return a JSON object {"blocks": [...]} where each block is one line or step of working:
- "text": plain-text transcription
- "latex": the same step in LaTeX, or "" if not mathematical
- "confidence": 0-1 confidence in the transcription
- "bbox": [x, y, width, height] in pixels of the original image ({width}x{height})
List blocks from top to bottom."""


class VisionLLMClassifier(QuestionClassifier):
    """
    Reads the printed question on a page.
    """

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def classify(self, page: Page) -> ClassificationResult:
        messages = build_vision_messages(
            CLASSIFICATION_SYSTEM_PROMPT,
            "Classify this page.",
            page.image,
            page.content_type,
        )
        data = await self.llm.ainvoke_json(messages)

        number = data.get("question_number")
        paper = data.get("paper_code")
        return ClassificationResult(
            question_text=str(data.get("question_text") or ""),
            question_number=str(number).strip() if number else None,
            paper_code=str(paper).strip() if paper else None,
            question_only=_as_bool(data.get("is_question_only")),
        )


class VisionLLMExtractor(TextExtractor):
    """
    Transcribes handwritten working into positioned blocks.
    """

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def extract(self, page: Page, context: str) -> List[MathBlock]:
        system_prompt = EXTRACTION_SYSTEM_PROMPT.replace(
            "{width}", str(page.width)
        ).replace("{height}", str(page.height))
        prompt = f"Question context: {context or 'unknown'}\n\nTranscribe the student's working."
        messages = build_vision_messages(system_prompt, prompt, page.image, page.content_type)

        data = await self.llm.ainvoke_json(messages)
        raw_blocks: List[Dict[str, Any]] = data.get("blocks") or []
        if not isinstance(raw_blocks, list):
            raise ValueError("Extraction response 'blocks' is not a list")

        blocks = build_math_blocks(page.page_index, [b for b in raw_blocks if isinstance(b, dict)])
        logger.info(f"Page {page.page_index}: extracted {len(blocks)} blocks")
        return blocks


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)
