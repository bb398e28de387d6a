"""
Marking Pipeline Module
Turns uploaded homework (images or a PDF) into marked, annotated pages

Usage:
    from homework_marker.pipeline import create_pipeline, ProgressChannel
    from homework_marker.core import PIPELINE_STAGES

    pipeline = create_pipeline(
        rasterizer=rasterizer,
        classifier=classifier,
        extractor=extractor,
        corpus=corpus,
        scorer=scorer,
        image_store=image_store,
    )

    channel = ProgressChannel(PIPELINE_STAGES)
    result = await pipeline.run(files, channel)
"""

from .models import (
    UploadedFile,
    Page,
    BoundingBox,
    MathBlock,
    ClassificationResult,
    AuditTrail,
    DetectionMatch,
    Found,
    Rescued,
    Rejected,
    DetectionResult,
    MarkingTask,
    EnrichedAnnotation,
    QuestionScore,
    QuestionResult,
    Submission,
)

from .similarity import (
    normalize_text,
    calculate_similarity,
)

from .detection import (
    CorpusCandidate,
    ExamCorpus,
    DetectionConfig,
    QuestionDetector,
    filter_sub_questions,
    matches_sub_question,
)

from .standardizer import (
    PdfRasterizer,
    PdfPlumberRasterizer,
    Standardizer,
    classify_input,
)

from .preprocessor import Preprocessor
from .ocr import OcrStage, QuestionClassifier, TextExtractor
from .segmentation import segment
from .executor import MarkingExecutor, ScoringCollaborator
from .renderer import AnnotationRenderer
from .pool import WorkerPool

from .progress import (
    ProgressChannel,
    create_progress_frame,
    format_sse,
    sse_stream,
)

from .orchestrator import (
    ImageStore,
    MarkingPipeline,
    PipelineCollaborators,
    PipelineConfig,
    SubmissionOptions,
    create_pipeline,
)

__all__ = [
    # Models
    "UploadedFile",
    "Page",
    "BoundingBox",
    "MathBlock",
    "ClassificationResult",
    "AuditTrail",
    "DetectionMatch",
    "Found",
    "Rescued",
    "Rejected",
    "DetectionResult",
    "MarkingTask",
    "EnrichedAnnotation",
    "QuestionScore",
    "QuestionResult",
    "Submission",
    # Similarity and detection
    "normalize_text",
    "calculate_similarity",
    "CorpusCandidate",
    "ExamCorpus",
    "DetectionConfig",
    "QuestionDetector",
    "filter_sub_questions",
    "matches_sub_question",
    # Stages
    "PdfRasterizer",
    "PdfPlumberRasterizer",
    "Standardizer",
    "classify_input",
    "Preprocessor",
    "OcrStage",
    "QuestionClassifier",
    "TextExtractor",
    "segment",
    "MarkingExecutor",
    "ScoringCollaborator",
    "AnnotationRenderer",
    "WorkerPool",
    # Progress
    "ProgressChannel",
    "create_progress_frame",
    "format_sse",
    "sse_stream",
    # Orchestration
    "ImageStore",
    "MarkingPipeline",
    "PipelineCollaborators",
    "PipelineConfig",
    "SubmissionOptions",
    "create_pipeline",
]
