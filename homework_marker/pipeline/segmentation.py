"""
Segmentation Engine
Consolidates extracted blocks into ordered per-question marking tasks
"""
import logging
from typing import Iterable, List, Optional

from .models import DetectionMatch, DetectionResult, MarkingTask, MathBlock

logger = logging.getLogger(__name__)


def consolidate_blocks(blocks_per_page: Iterable[List[MathBlock]]) -> List[MathBlock]:
    """
    Merge blocks from every page, drop illegible ones, and impose the
    deterministic reading order (page, then top-to-bottom, then left-to-right).
    """
    merged = [block for blocks in blocks_per_page for block in blocks]
    legible = [block for block in merged if block.is_legible]
    dropped = len(merged) - len(legible)
    if dropped:
        logger.info(f"Dropped {dropped} block(s) with no recognised text")
    return sorted(legible, key=lambda block: (block.sort_key, block.block_id))


def select_match(detections: Iterable[DetectionResult]) -> Optional[DetectionMatch]:
    """
    Pick the single question a submission is marked against.

    Only one question per submission is supported: when several distinct
    questions were detected, the first by corpus order wins and a warning
    is logged.
    """
    matches = {}
    for result in detections:
        if result.found and result.match.candidate_id not in matches:
            matches[result.match.candidate_id] = result.match
    if not matches:
        return None

    ordered = sorted(matches.values(), key=lambda m: m.corpus_order)
    if len(ordered) > 1:
        logger.warning(
            f"Detected {len(ordered)} different questions "
            f"({', '.join(m.candidate_id for m in ordered)}); multi-question "
            f"segmentation is not supported, marking against {ordered[0].candidate_id}"
        )
    return ordered[0]


def segment(
    blocks_per_page: Iterable[List[MathBlock]],
    detections: Iterable[DetectionResult],
) -> List[MarkingTask]:
    """
    Build marking tasks from extracted blocks and detection results.

    Args:
        blocks_per_page: Blocks grouped by page, in any arrival order
        detections: Detection results for the submission

    Returns:
        One task holding every legible block, or an empty list when no
        legible block survived. The task's scheme is None when nothing
        was detected.
    """
    blocks = consolidate_blocks(blocks_per_page)
    if not blocks:
        logger.info("No legible blocks; nothing to mark")
        return []

    match = select_match(detections)
    source_pages = sorted({block.page_index for block in blocks})

    if match is None:
        question_number = "unknown"
        scheme = None
        total_marks = 0
    else:
        question_number = match.question_label
        scheme = match.marking_scheme
        total_marks = match.total_marks

    task = MarkingTask(
        question_number=question_number,
        blocks=blocks,
        marking_scheme=scheme,
        source_pages=source_pages,
        total_marks=total_marks,
    )
    logger.info(
        f"Segmented {len(blocks)} block(s) from pages {source_pages} "
        f"into task Q{question_number}"
    )
    return [task]
