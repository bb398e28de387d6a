"""
Marking Executor
Scores marking tasks in parallel through the scoring collaborator
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.constants import AnnotationKind, CoordinateUnit, Messages
from ..core.exceptions import MarkingError, SchemeAssignmentError
from .models import BoundingBox, EnrichedAnnotation, MarkingTask, QuestionResult, QuestionScore
from .pool import WorkerPool

logger = logging.getLogger(__name__)

_KIND_ALIASES = {
    "tick": AnnotationKind.MARK,
    "mark": AnnotationKind.MARK,
    "correct": AnnotationKind.MARK,
    "cross": AnnotationKind.CROSS,
    "wrong": AnnotationKind.CROSS,
    "incorrect": AnnotationKind.CROSS,
    "comment": AnnotationKind.COMMENT,
    "write": AnnotationKind.COMMENT,
    "score": AnnotationKind.SCORE,
}


class ScoringCollaborator(ABC):
    """External AI scoring service"""

    @abstractmethod
    async def score(self, task: MarkingTask) -> Dict[str, Any]:
        """
        Score one task against its marking scheme.

        Returns:
            Dict with `awarded_marks`, optional `total_marks`, `feedback`
            and `annotations` (each with `kind`, `text` and either a
            `block_id` or a `page_index` plus `bbox`/`unit`)
        """
        pass


@dataclass
class ExecutionReport:
    """Outcome of the marking stage"""
    results: List[QuestionResult] = field(default_factory=list)
    failed: List[Tuple[str, Exception]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def build_annotations(
    task: MarkingTask,
    raw_annotations: List[Dict[str, Any]],
    page_count: int,
) -> List[EnrichedAnnotation]:
    """
    Position raw annotations.

    Annotations referencing a block take the block's page and box. The
    rest must carry their own page index and box; any with a page index
    outside the submission are dropped.
    """
    blocks = {block.block_id: block for block in task.blocks}
    annotations = []

    for raw in raw_annotations or []:
        kind = _KIND_ALIASES.get(str(raw.get("kind") or raw.get("action") or "").lower())
        if kind is None:
            logger.warning(f"Ignoring annotation with unknown kind: {raw!r}")
            continue

        block = blocks.get(raw.get("block_id") or raw.get("step_id"))
        if block is not None and not raw.get("bbox"):
            page_index = block.page_index
            box = block.coordinates
            unit = CoordinateUnit.PIXEL
        else:
            page_index = raw.get("page_index")
            if page_index is None and task.source_pages:
                page_index = task.source_pages[-1]
            bbox = raw.get("bbox") or [0, 0, 0, 0]
            if isinstance(bbox, dict):
                bbox = [bbox.get("x", 0), bbox.get("y", 0), bbox.get("width", 0), bbox.get("height", 0)]
            x, y, w, h = ([_to_float(v) for v in bbox] + [0.0] * 4)[:4]
            box = BoundingBox(x=x, y=y, width=w, height=h)
            try:
                unit = CoordinateUnit(raw.get("unit", CoordinateUnit.PIXEL.value))
            except ValueError:
                unit = CoordinateUnit.PIXEL

        try:
            page_index = int(page_index)
        except (TypeError, ValueError):
            page_index = -1
        if not 0 <= page_index < page_count:
            logger.warning(
                f"Dropping annotation for Q{task.question_number} with invalid page index {page_index}"
            )
            continue

        annotations.append(EnrichedAnnotation(
            page_index=page_index,
            coordinates=box,
            kind=kind,
            text=str(raw.get("text") or ""),
            unit=unit,
        ))
    return annotations


def build_question_result(
    task: MarkingTask,
    raw: Dict[str, Any],
    page_count: int,
) -> QuestionResult:
    """
    Convert a raw scoring response into a QuestionResult.

    Awarded marks are clamped into [0, total]; the task's total from the
    corpus wins over any total the collaborator reports.
    """
    total = float(task.total_marks) if task.total_marks else _to_float(raw.get("total_marks"))
    awarded = _to_float(raw.get("awarded_marks"))
    if awarded > total or awarded < 0:
        logger.warning(
            f"Clamping awarded marks for Q{task.question_number}: {awarded} not in [0, {total}]"
        )
    awarded = max(0.0, min(awarded, total))

    return QuestionResult(
        question_number=task.question_number,
        score=QuestionScore(awarded_marks=awarded, total_marks=total),
        feedback=str(raw.get("feedback") or ""),
        annotations=tuple(build_annotations(task, raw.get("annotations", []), page_count)),
    )


class MarkingExecutor:
    """
    Runs every task with a scheme through the scoring collaborator.

    Tasks without a scheme are skipped. One task's failure never aborts
    its siblings; the stage only fails when no task could be scored.
    """

    def __init__(self, scorer: ScoringCollaborator, pool: WorkerPool):
        self.scorer = scorer
        self.pool = pool

    async def execute(self, tasks: List[MarkingTask], page_count: int) -> ExecutionReport:
        """
        Score all tasks.

        Args:
            tasks: Segmented tasks, some possibly without a scheme
            page_count: Number of pages in the submission

        Returns:
            ExecutionReport with results in task order

        Raises:
            SchemeAssignmentError: No task has a marking scheme
            MarkingError: Every submitted task failed
        """
        report = ExecutionReport()
        runnable = []
        for task in tasks:
            if task.has_scheme:
                runnable.append(task)
            else:
                logger.warning(f"Skipping Q{task.question_number}: no marking scheme")
                report.skipped.append(task.question_number)

        if not runnable:
            raise SchemeAssignmentError(Messages.NO_SCHEMES)

        async def mark(task: MarkingTask) -> QuestionResult:
            raw = await self.scorer.score(task)
            return build_question_result(task, raw, page_count)

        outcomes = await self.pool.map(mark, runnable, return_exceptions=True)

        for task, outcome in zip(runnable, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Marking failed for Q{task.question_number}: {outcome!r}")
                report.failed.append((task.question_number, outcome))
            else:
                report.results.append(outcome)

        if not report.results:
            _, first_error = report.failed[0]
            raise MarkingError(Messages.ALL_TASKS_FAILED, cause=first_error)

        logger.info(
            f"Marked {len(report.results)} question(s), "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        return report
