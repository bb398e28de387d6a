# Services package
from .marking_service import marking_service, MarkingService
from .exam_corpus import JsonExamCorpus
from .image_store import LocalImageStore
from .llm_providers import LLMFactory, LLMProvider

__all__ = [
    "marking_service",
    "MarkingService",
    "JsonExamCorpus",
    "LocalImageStore",
    "LLMFactory",
    "LLMProvider",
]
