"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any


# ===== Marking Schemas =====
class StagesResponse(BaseModel):
    steps: List[str] = Field(..., description="Ordered pipeline step names")
    total: int



# ===== Corpus Schemas =====
class PaperSummary(BaseModel):
    paper_code: Optional[str] = None
    exam_board: str = ""
    tier: str = ""
    exam_series: str = ""
    question_count: int = 0
    has_marking_scheme: bool = False


class PaperListResponse(BaseModel):
    papers: List[PaperSummary]
    total: int


class PaperDetailResponse(BaseModel):
    paper_code: str
    metadata: Dict[str, Any] = {}
    questions: List[Dict[str, Any]] = []


# ===== Config Schemas =====
class ConfigResponse(BaseModel):
    available_models: List[str]
    default_model: str
    llm_provider: str
    acceptance_threshold: float = Field(..., description="Minimum similarity for a main question")
    sub_question_acceptance_threshold: float = Field(..., description="Minimum similarity for a sub-question")
    rescue_threshold: float = Field(..., description="Minimum score that triggers a broadened retry")
    max_pages: int


# ===== Common Schemas =====
class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    error_code: Optional[str] = None
