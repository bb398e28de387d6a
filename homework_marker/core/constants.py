"""
Application constants
"""
from enum import Enum


class InputType(str, Enum):
    """Submission shapes recognised by the standardizer"""
    PDF = "pdf"
    SINGLE_IMAGE = "single_image"
    MULTI_IMAGE = "multi_image"


class AnnotationKind(str, Enum):
    """Kinds of marks burned onto a page"""
    MARK = "mark"
    CROSS = "cross"
    COMMENT = "comment"
    SCORE = "score"


class CoordinateUnit(str, Enum):
    """Units an annotation box may arrive in"""
    PIXEL = "pixel"
    FRACTION = "fraction"
    PERCENT = "percent"


# Ordered pipeline stages reported to the client
PIPELINE_STAGES = [
    "Input Validation",
    "Standardization",
    "Preprocessing",
    "OCR & Classification",
    "Question Detection",
    "Segmentation",
    "Marking",
    "Output Generation",
]


class Stage:
    """Index of each entry in PIPELINE_STAGES"""
    INPUT_VALIDATION = 0
    STANDARDIZATION = 1
    PREPROCESSING = 2
    OCR = 3
    DETECTION = 4
    SEGMENTATION = 5
    MARKING = 6
    OUTPUT = 7


# Progress / error messages
class Messages:
    """User-facing pipeline messages"""
    
    # Progress
    VALIDATING = "Validating uploaded files..."
    STANDARDIZING = "Converting submission to pages..."
    PREPROCESSING = "Enhancing page images..."
    EXTRACTING = "Reading handwritten work..."
    DETECTING = "Identifying the exam question..."
    SEGMENTING = "Organising work by question..."
    MARKING = "Marking against the official scheme..."
    GENERATING = "Generating annotated pages..."
    COMPLETE = "Marking complete"
    NO_WORK_FOUND = "No student work found to mark."
    QUESTION_ONLY = "Question identified; no student work to mark."
    
    # Errors
    NO_FILES = "No files were uploaded"
    INVALID_COMBINATION = "Upload either one PDF, or one or more images"
    NO_PAGES = "No readable pages could be produced from the submission"
    NO_SCHEMES = "Failed to assign marking schemes to any detected question work."
    ALL_TASKS_FAILED = "Marking failed for every detected question"


# File size limits (in bytes)
class FileLimits:
    """File size limits"""
    MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB
    MAX_PDF_SIZE = 50 * 1024 * 1024    # 50MB
    MAX_UPLOAD_COUNT = 50
    IMAGE_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp", "image/bmp", "image/gif")
    PDF_CONTENT_TYPE = "application/pdf"
