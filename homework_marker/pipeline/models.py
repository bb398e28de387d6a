"""
Pipeline Data Model
Pages, math blocks, detection results, marking tasks and question results
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.constants import AnnotationKind, CoordinateUnit


@dataclass
class UploadedFile:
    """A raw uploaded file as received by the submission endpoint"""
    filename: str
    content_type: str
    data: bytes


@dataclass
class Page:
    """
    One raster page of a submission.

    `image` is replaced in place by the preprocessor; `original_image`
    keeps the untouched raster for rendering.
    """
    page_index: int
    image: bytes
    original_file_name: str
    width: int = 0
    height: int = 0
    original_image: Optional[bytes] = None
    content_type: str = "image/png"

    def __post_init__(self):
        if self.original_image is None:
            self.original_image = self.image

    @property
    def has_dimensions(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel coordinates"""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class MathBlock:
    """One OCR-recognised region of mathematical content"""
    block_id: str
    page_index: int
    coordinates: BoundingBox
    primary_text: str = ""
    latex_text: str = ""
    primary_confidence: float = 0.0
    latex_confidence: float = 0.0
    math_likeness: float = 0.0
    suspicious: bool = False

    @property
    def text(self) -> str:
        """Best available recognised text"""
        return (self.latex_text or self.primary_text).strip()

    @property
    def is_legible(self) -> bool:
        return bool(self.primary_text.strip() or self.latex_text.strip())

    @property
    def sort_key(self) -> Tuple[int, float, float]:
        return (self.page_index, self.coordinates.y, self.coordinates.x)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClassificationResult:
    """Global question context read from the first page"""
    question_text: str = ""
    question_number: Optional[str] = None
    paper_code: Optional[str] = None
    # Page shows the printed question but no student working
    question_only: bool = False


# ===== Detection =====

AuditTrail = List[Tuple[str, float]]


@dataclass(frozen=True)
class DetectionMatch:
    """A corpus question matched against the submission"""
    candidate_id: str
    question_number: str
    sub_question_number: str
    exam_board: str
    paper_code: str
    tier: str
    exam_series: str
    total_marks: int
    confidence: float
    corpus_order: int
    marking_scheme: Optional[Dict[str, Any]] = None

    @property
    def question_label(self) -> str:
        return f"{self.question_number}{self.sub_question_number}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidateId": self.candidate_id,
            "questionNumber": self.question_number,
            "subQuestionNumber": self.sub_question_number,
            "examBoard": self.exam_board,
            "paperCode": self.paper_code,
            "tier": self.tier,
            "examSeries": self.exam_series,
            "totalMarks": self.total_marks,
            "confidence": round(self.confidence, 4),
            "hasMarkingScheme": self.marking_scheme is not None,
        }


@dataclass(frozen=True)
class Found:
    """Best candidate cleared the acceptance threshold"""
    match: DetectionMatch
    audit_trail: AuditTrail = field(default_factory=list)
    found = True
    kind = "found"


@dataclass(frozen=True)
class Rescued:
    """Accepted only after the broadened retry"""
    match: DetectionMatch
    note: str
    audit_trail: AuditTrail = field(default_factory=list)
    found = True
    kind = "rescued"


@dataclass(frozen=True)
class Rejected:
    """No candidate was good enough"""
    reason: str
    best_score: float = 0.0
    audit_trail: AuditTrail = field(default_factory=list)
    found = False
    kind = "rejected"
    match = None


DetectionResult = Union[Found, Rescued, Rejected]


def detection_to_dict(result: DetectionResult, include_audit: bool = False) -> Dict[str, Any]:
    """Serialise a detection result for the final payload"""
    data: Dict[str, Any] = {"status": result.kind, "found": result.found}
    if result.match is not None:
        data.update(result.match.to_dict())
    if isinstance(result, Rescued):
        data["note"] = result.note
    if isinstance(result, Rejected):
        data["reason"] = result.reason
        data["bestScore"] = round(result.best_score, 4)
    if include_audit:
        data["auditTrail"] = [
            {"candidateId": cid, "score": round(score, 4)}
            for cid, score in result.audit_trail
        ]
    return data


# ===== Marking =====

@dataclass
class MarkingTask:
    """Ordered blocks for one question, paired with its scheme"""
    question_number: str
    blocks: List[MathBlock]
    marking_scheme: Optional[Dict[str, Any]] = None
    source_pages: List[int] = field(default_factory=list)
    total_marks: int = 0

    @property
    def has_scheme(self) -> bool:
        return bool(self.marking_scheme)


@dataclass(frozen=True)
class EnrichedAnnotation:
    """A positioned annotation ready to be drawn on a page"""
    page_index: int
    coordinates: BoundingBox
    kind: AnnotationKind
    text: str = ""
    unit: CoordinateUnit = CoordinateUnit.PIXEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageIndex": self.page_index,
            "coordinates": self.coordinates.to_dict(),
            "kind": self.kind.value,
            "text": self.text,
            "unit": self.unit.value,
        }


@dataclass(frozen=True)
class QuestionScore:
    awarded_marks: float
    total_marks: float

    def __post_init__(self):
        if self.awarded_marks > self.total_marks:
            raise ValueError(
                f"awarded_marks ({self.awarded_marks}) exceeds total_marks ({self.total_marks})"
            )


@dataclass(frozen=True)
class QuestionResult:
    """Immutable marking outcome for one question"""
    question_number: str
    score: QuestionScore
    feedback: str = ""
    annotations: Tuple[EnrichedAnnotation, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionNumber": self.question_number,
            "score": {
                "awardedMarks": self.score.awarded_marks,
                "totalMarks": self.score.total_marks,
                "scoreText": f"{format_marks(self.score.awarded_marks)}/{format_marks(self.score.total_marks)}",
            },
            "feedback": self.feedback,
            "annotations": [a.to_dict() for a in self.annotations],
        }


def format_marks(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


@dataclass
class Submission:
    """Request-scoped state for one end-to-end marking run"""
    submission_id: str
    input_type: Optional[str] = None
    original_input_type: str = "images"
    original_file_name: str = ""
    pages: List[Page] = field(default_factory=list)
    classification: Optional[ClassificationResult] = None
    blocks: List[MathBlock] = field(default_factory=list)
    detections: List[DetectionResult] = field(default_factory=list)
    tasks: List[MarkingTask] = field(default_factory=list)
    results: List[QuestionResult] = field(default_factory=list)
    failed_questions: List[str] = field(default_factory=list)
    annotated_output: List[str] = field(default_factory=list)
