# Core package
from .constants import (
    InputType,
    AnnotationKind,
    CoordinateUnit,
    PIPELINE_STAGES,
    Stage,
    Messages,
    FileLimits,
)
from .exceptions import (
    BaseAPIException,
    NotFoundException,
    ServiceUnavailableException,
    PipelineException,
    InputValidationError,
    PageLimitError,
    StandardizationError,
    PreprocessingError,
    SchemeAssignmentError,
    MarkingError,
    CollaboratorError,
)
from .errors import ErrorCategory, classify_error, format_error_message
from .logger import logger, setup_logger, pipeline_logger, submission_logger

__all__ = [
    # Constants
    "InputType",
    "AnnotationKind",
    "CoordinateUnit",
    "PIPELINE_STAGES",
    "Stage",
    "Messages",
    "FileLimits",
    # Exceptions
    "BaseAPIException",
    "NotFoundException",
    "ServiceUnavailableException",
    "PipelineException",
    "InputValidationError",
    "PageLimitError",
    "StandardizationError",
    "PreprocessingError",
    "SchemeAssignmentError",
    "MarkingError",
    "CollaboratorError",
    # Errors
    "ErrorCategory",
    "classify_error",
    "format_error_message",
    # Logging
    "logger",
    "setup_logger",
    "pipeline_logger",
    "submission_logger",
]
