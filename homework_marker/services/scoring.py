"""
AI Scoring Service
==================
Marks a task's working against its marking scheme with a chat model.
"""

import json
import logging
from typing import Any, Dict

from ..pipeline.executor import ScoringCollaborator
from ..pipeline.models import MarkingTask
from .llm_providers import BaseLLM, build_vision_messages

logger = logging.getLogger(__name__)


MARKING_SYSTEM_PROMPT = """You are an experienced GCSE maths examiner.
Mark the student's working strictly against the official marking scheme.
Award method (M), process (P), accuracy (A) and independent (B) marks as the scheme describes.
Apply error carried forward: credit correct method applied to an earlier wrong value.

Return a JSON object with these keys:
- "awarded_marks": number of marks awarded
- "total_marks": total marks available
- "feedback": two or three sentences of feedback for the student
- "annotations": list of objects, each with
    - "block_id": id of the working step the annotation belongs to
    - "kind": "tick", "cross" or "comment"
    - "text": mark code such as "M1", "A0" or a short comment
Only reference block ids that appear in the working."""


def format_working(task: MarkingTask) -> str:
    """One line per block: `[block_id] text`"""
    return "\n".join(f"[{block.block_id}] {block.text}" for block in task.blocks)


class LLMScoringCollaborator(ScoringCollaborator):
    """
    Scores tasks through a JSON-mode chat model.
    """

    def __init__(self, llm: BaseLLM):
        self.llm = llm

    async def score(self, task: MarkingTask) -> Dict[str, Any]:
        scheme = json.dumps(task.marking_scheme, ensure_ascii=False, indent=2)
        prompt = (
            f"Question {task.question_number} ({task.total_marks} marks)\n\n"
            f"Marking scheme:\n{scheme}\n\n"
            f"Student working:\n{format_working(task)}"
        )
        messages = build_vision_messages(MARKING_SYSTEM_PROMPT, prompt)

        logger.info(
            f"Scoring Q{task.question_number}: {len(task.blocks)} blocks, "
            f"{task.total_marks} marks available"
        )
        return await self.llm.ainvoke_json(messages)
