"""
Marking Pipeline Orchestrator
Runs every stage in order, streams progress, and builds the final payload
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.constants import Messages, Stage
from ..core.errors import format_error_message
from ..core.exceptions import CollaboratorError, PipelineException
from ..core.logger import submission_logger
from ..utils import generate_submission_id
from .detection import DetectionConfig, ExamCorpus, QuestionDetector
from .executor import MarkingExecutor, ScoringCollaborator
from .models import DetectionResult, Submission, UploadedFile, detection_to_dict
from .ocr import OcrStage, QuestionClassifier, TextExtractor, fallback_context
from .pool import WorkerPool
from .preprocessor import Preprocessor
from .progress import ProgressChannel
from .renderer import AnnotationRenderer, total_score
from .segmentation import segment
from .standardizer import PdfRasterizer, Standardizer, classify_input, validate_file_sizes

logger = logging.getLogger(__name__)

_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "bmp", "gif"}


@dataclass
class PipelineConfig:
    """Explicit configuration passed into every pipeline run"""
    debug: bool = False
    concurrency_limit: int = 4
    collaborator_timeout: Optional[float] = 120.0
    max_pages: int = 20
    render_reference_height: int = 2400
    detection: DetectionConfig = field(default_factory=DetectionConfig)

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        return cls(
            debug=settings.DEBUG,
            concurrency_limit=settings.CONCURRENCY_LIMIT,
            collaborator_timeout=settings.COLLABORATOR_TIMEOUT,
            max_pages=settings.MAX_PAGES,
            render_reference_height=settings.RENDER_REFERENCE_HEIGHT,
            detection=DetectionConfig(
                acceptance_threshold=settings.ACCEPTANCE_THRESHOLD,
                sub_question_acceptance_threshold=settings.SUB_QUESTION_ACCEPTANCE_THRESHOLD,
                rescue_threshold=settings.RESCUE_THRESHOLD,
                sub_part_fallback_score=settings.SUB_PART_FALLBACK_SCORE,
                sub_part_fallback_min_similarity=settings.SUB_PART_FALLBACK_MIN_SIMILARITY,
            ),
        )


class ImageStore(ABC):
    """Durable storage for output images"""

    @abstractmethod
    async def save(self, submission_id: str, name: str, data: bytes) -> str:
        """
        Store one image.

        Returns:
            Reference (URL) the client can use to fetch the image
        """
        pass


@dataclass
class PipelineCollaborators:
    """External services the pipeline calls into"""
    rasterizer: PdfRasterizer
    classifier: QuestionClassifier
    extractor: TextExtractor
    corpus: ExamCorpus
    scorer: ScoringCollaborator
    image_store: ImageStore


@dataclass
class SubmissionOptions:
    """Optional fields sent alongside the files"""
    session_id: Optional[str] = None
    custom_text: Optional[str] = None
    model: Optional[str] = None


class MarkingPipeline:
    """
    End-to-end marking of one submission.

    Stages:
    1. Input validation
    2. Standardization into pages
    3. Preprocessing
    4. OCR and classification
    5. Question detection
    6. Segmentation into marking tasks
    7. Marking
    8. Annotation rendering and output

    A question-only page (no student working) skips extraction and goes
    straight from detection to output, returning the matched question and
    its scheme unmarked.

    Every run writes progress into its own ProgressChannel and closes it
    exactly once, whatever happens.
    """

    def __init__(self, collaborators: PipelineCollaborators, config: PipelineConfig):
        self.collaborators = collaborators
        self.config = config
        self.detector = QuestionDetector(collaborators.corpus, config.detection)

    async def run(
        self,
        files: List[UploadedFile],
        channel: ProgressChannel,
        options: Optional[SubmissionOptions] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Mark a submission.

        Args:
            files: Uploaded files
            channel: Progress channel owned by this run
            options: Session id and free-text annotation

        Returns:
            Final payload, or None when the run failed (the error was
            already written to the channel)
        """
        options = options or SubmissionOptions()
        submission = Submission(submission_id=generate_submission_id())
        pool = WorkerPool(self.config.concurrency_limit, self.config.collaborator_timeout)
        started = time.perf_counter()

        try:
            result = await self._execute(submission, files, channel, pool, options)
            result["processingTimeMs"] = int((time.perf_counter() - started) * 1000)
            channel.complete(result)
            submission_logger(submission.submission_id).info(
                f"completed in {result['processingTimeMs']}ms "
                f"with {len(submission.results)} result(s)"
            )
            return result
        except Exception as e:
            if isinstance(e, PipelineException):
                logger.warning(f"[{submission.submission_id}] pipeline stopped: {e}")
            else:
                logger.error(f"[{submission.submission_id}] unexpected pipeline error: {e}", exc_info=True)
            channel.fail(format_error_message(e, self.config.debug))
            return None
        finally:
            channel.close()

    @contextmanager
    def _stage(self, submission: Submission, channel: ProgressChannel, step: int, message: str):
        channel.emit(step, message)
        started = time.perf_counter()
        yield
        elapsed = int((time.perf_counter() - started) * 1000)
        submission_logger(submission.submission_id).info(
            f"{channel.steps[step]} finished in {elapsed}ms"
        )

    async def _execute(
        self,
        submission: Submission,
        files: List[UploadedFile],
        channel: ProgressChannel,
        pool: WorkerPool,
        options: SubmissionOptions,
    ) -> Dict[str, Any]:
        with self._stage(submission, channel, Stage.INPUT_VALIDATION, Messages.VALIDATING):
            submission.input_type = classify_input(files).value
            validate_file_sizes(files)

        with self._stage(submission, channel, Stage.STANDARDIZATION, Messages.STANDARDIZING):
            standardizer = Standardizer(
                self.collaborators.rasterizer, pool, max_pages=self.config.max_pages
            )
            standardized = await standardizer.standardize(files)
            submission.pages = standardized.pages
            submission.input_type = standardized.input_type.value
            submission.original_input_type = standardized.original_input_type
            submission.original_file_name = standardized.original_file_name

        with self._stage(submission, channel, Stage.PREPROCESSING, Messages.PREPROCESSING):
            await Preprocessor(pool).process(submission.pages)

        with self._stage(submission, channel, Stage.OCR, Messages.EXTRACTING):
            ocr = OcrStage(self.collaborators.classifier, self.collaborators.extractor, pool)
            classification = await ocr.classify(submission.pages)
            submission.classification = classification
            if classification.question_only:
                blocks_per_page = [[] for _ in submission.pages]
            else:
                blocks_per_page = await ocr.extract(submission.pages, classification.question_text)
            submission.blocks = [b for blocks in blocks_per_page for b in blocks]

        with self._stage(submission, channel, Stage.DETECTION, Messages.DETECTING):
            submission.detections = [await self._detect(submission, blocks_per_page)]

        if classification.question_only:
            with self._stage(submission, channel, Stage.OUTPUT, Messages.QUESTION_ONLY):
                submission.annotated_output = await self._store(
                    submission, [page.original_image for page in submission.pages], pool
                )
            return self._payload(submission, options, Messages.QUESTION_ONLY, mode="question")

        with self._stage(submission, channel, Stage.SEGMENTATION, Messages.SEGMENTING):
            submission.tasks = segment(blocks_per_page, submission.detections)

        if not submission.tasks:
            with self._stage(submission, channel, Stage.OUTPUT, Messages.NO_WORK_FOUND):
                submission.annotated_output = await self._store(
                    submission, [page.original_image for page in submission.pages], pool
                )
            return self._payload(submission, options, Messages.NO_WORK_FOUND)

        with self._stage(submission, channel, Stage.MARKING, Messages.MARKING):
            executor = MarkingExecutor(self.collaborators.scorer, pool)
            report = await executor.execute(submission.tasks, len(submission.pages))
            submission.results = report.results
            submission.failed_questions = [number for number, _ in report.failed]

        with self._stage(submission, channel, Stage.OUTPUT, Messages.GENERATING):
            renderer = AnnotationRenderer(pool, self.config.render_reference_height)
            images = await renderer.render(submission.pages, submission.results)
            submission.annotated_output = await self._store(submission, images, pool)

        return self._payload(submission, options, Messages.COMPLETE)

    async def _detect(self, submission: Submission, blocks_per_page) -> DetectionResult:
        classification = submission.classification
        text = classification.question_text or fallback_context(blocks_per_page)

        result = await asyncio.to_thread(
            self.detector.detect, text, classification.question_number, classification.paper_code
        )
        log = submission_logger(submission.submission_id)
        if result.found:
            log.info(
                f"detected {result.match.candidate_id} "
                f"({result.kind}, confidence {result.match.confidence:.3f})"
            )
        else:
            log.info(f"detection rejected: {result.reason}")
        return result

    async def _store(self, submission: Submission, images: List[bytes], pool: WorkerPool) -> List[str]:
        store = self.collaborators.image_store

        async def save(item) -> str:
            page, data = item
            if data is page.original_image:
                name = f"page-{page.page_index + 1}.{_original_extension(page.original_file_name)}"
            else:
                name = f"page-{page.page_index + 1}-annotated.png"
            return await store.save(submission.submission_id, name, data)

        try:
            return await pool.map(save, list(zip(submission.pages, images)))
        except Exception as e:
            raise CollaboratorError("Image storage", e) from e

    def _payload(
        self,
        submission: Submission,
        options: SubmissionOptions,
        message: str,
        mode: str = "marking",
    ) -> Dict[str, Any]:
        awarded, total = total_score(submission.results)
        payload = {
            "submissionId": submission.submission_id,
            "mode": mode,
            "message": message,
            "resultsByQuestion": [r.to_dict() for r in submission.results],
            "totalScore": {"awardedMarks": awarded, "totalMarks": total},
            "annotatedOutput": submission.annotated_output,
            "outputFormat": "images",
            "originalInputType": submission.original_input_type,
            "originalFileName": submission.original_file_name,
            "pageCount": len(submission.pages),
            "sessionId": options.session_id,
            "customText": options.custom_text,
            "detection": [
                detection_to_dict(d, include_audit=self.config.debug)
                for d in submission.detections
            ],
            "failedQuestions": submission.failed_questions,
        }
        if mode == "question":
            match = next((d.match for d in submission.detections if d.found), None)
            payload["questionText"] = submission.classification.question_text
            payload["markingScheme"] = match.marking_scheme if match else None
        return payload


def _original_extension(filename: str) -> str:
    suffix = Path(filename).suffix.lstrip(".").lower()
    return suffix if suffix in _EXTENSIONS else "png"


def create_pipeline(
    rasterizer: PdfRasterizer,
    classifier: QuestionClassifier,
    extractor: TextExtractor,
    corpus: ExamCorpus,
    scorer: ScoringCollaborator,
    image_store: ImageStore,
    **kwargs
) -> MarkingPipeline:
    """
    Factory function to create a MarkingPipeline.

    Args:
        rasterizer: PDF rasterization collaborator
        classifier: Question classification collaborator
        extractor: Per-page text extraction collaborator
        corpus: Exam question and marking scheme corpus
        scorer: AI scoring collaborator
        image_store: Storage for output images
        **kwargs: PipelineConfig options

    Returns:
        Configured MarkingPipeline instance
    """
    collaborators = PipelineCollaborators(
        rasterizer=rasterizer,
        classifier=classifier,
        extractor=extractor,
        corpus=corpus,
        scorer=scorer,
        image_store=image_store,
    )
    return MarkingPipeline(collaborators, PipelineConfig(**kwargs))
