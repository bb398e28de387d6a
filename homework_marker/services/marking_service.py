"""
Marking Service
Wires the marking pipeline to its production collaborators
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from ..config import settings
from ..core.constants import PIPELINE_STAGES
from ..pipeline.models import UploadedFile
from ..pipeline.orchestrator import (
    MarkingPipeline,
    PipelineCollaborators,
    PipelineConfig,
    SubmissionOptions,
)
from ..pipeline.progress import ProgressChannel
from ..pipeline.standardizer import PdfPlumberRasterizer
from .exam_corpus import JsonExamCorpus
from .image_store import LocalImageStore
from .llm_providers import LLMFactory
from .scoring import LLMScoringCollaborator
from .vision_ocr import VisionLLMClassifier, VisionLLMExtractor

logger = logging.getLogger(__name__)


class MarkingService:
    """Service for running homework submissions through the marking pipeline"""

    def __init__(self):
        self._corpus: Optional[JsonExamCorpus] = None
        # In-flight runs, held until done
        self._running: Set[asyncio.Task] = set()
        self.image_store = LocalImageStore()
        self.rasterizer = PdfPlumberRasterizer(resolution=settings.PDF_RESOLUTION)

    @property
    def corpus(self) -> JsonExamCorpus:
        """Exam corpus, loaded on first use"""
        if self._corpus is None:
            self._corpus = JsonExamCorpus.from_json_file(settings.CORPUS_PATH)
        return self._corpus

    def resolve_model(self, model: Optional[str]) -> Optional[str]:
        """Requested model if allowed, otherwise the provider default"""
        if model and model not in settings.AVAILABLE_MODELS:
            logger.warning(f"Model '{model}' is not available, using default")
            return None
        return model

    def create_pipeline(self, model: Optional[str] = None) -> MarkingPipeline:
        """
        Build a pipeline for one request.

        Args:
            model: Optional model preference from the client

        Returns:
            MarkingPipeline bound to the configured LLM provider
        """
        llm = LLMFactory.create(model=self.resolve_model(model))
        collaborators = PipelineCollaborators(
            rasterizer=self.rasterizer,
            classifier=VisionLLMClassifier(llm),
            extractor=VisionLLMExtractor(llm),
            corpus=self.corpus,
            scorer=LLMScoringCollaborator(llm),
            image_store=self.image_store,
        )
        return MarkingPipeline(collaborators, PipelineConfig.from_settings(settings))

    def start(
        self,
        pipeline: MarkingPipeline,
        files: List[UploadedFile],
        options: SubmissionOptions,
    ):
        """
        Start a pipeline run in the background.

        Returns:
            (channel, task): the channel to drain and the running task
        """
        channel = ProgressChannel(PIPELINE_STAGES)
        task = asyncio.create_task(pipeline.run(files, channel, options))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return channel, task

    @property
    def running(self) -> int:
        """Number of pipeline runs still in progress"""
        return len(self._running)

    def get_stages(self) -> List[str]:
        return list(PIPELINE_STAGES)

    def get_config(self) -> Dict[str, Any]:
        return {
            "available_models": settings.AVAILABLE_MODELS,
            "default_model": settings.DEFAULT_MODEL,
            "llm_provider": settings.LLM_PROVIDER,
            "acceptance_threshold": settings.ACCEPTANCE_THRESHOLD,
            "sub_question_acceptance_threshold": settings.SUB_QUESTION_ACCEPTANCE_THRESHOLD,
            "rescue_threshold": settings.RESCUE_THRESHOLD,
            "max_pages": settings.MAX_PAGES,
        }


# Singleton instance
marking_service = MarkingService()
