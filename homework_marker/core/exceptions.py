"""
Custom exceptions for the homework marking API and pipeline
"""
from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base exception for all API errors"""
    
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str = None,
        headers: dict = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundException(BaseAPIException):
    """Resource not found"""
    
    def __init__(self, resource: str, identifier: str = None):
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class ServiceUnavailableException(BaseAPIException):
    """External service unavailable"""
    
    def __init__(self, service: str):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service '{service}' is unavailable",
            error_code="SERVICE_UNAVAILABLE"
        )


# ===== Pipeline exceptions =====

class PipelineException(Exception):
    """
    Base exception for failures raised inside the marking pipeline.
    
    The message is descriptive and safe to show to the caller.
    """
    error_code = "PIPELINE_ERROR"
    
    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = message


class InputValidationError(PipelineException):
    """Bad file combination or empty upload"""
    error_code = "INPUT_VALIDATION_ERROR"


class PageLimitError(InputValidationError):
    """Submission has more pages than allowed"""
    error_code = "PAGE_LIMIT_EXCEEDED"
    
    def __init__(self, page_count: int, limit: int):
        super().__init__(
            f"Submission has {page_count} pages; the maximum is {limit}"
        )
        self.page_count = page_count
        self.limit = limit


class StandardizationError(PipelineException):
    """No pages could be produced from the upload"""
    error_code = "STANDARDIZATION_ERROR"


class PreprocessingError(PipelineException):
    """A single page could not be preprocessed"""
    error_code = "PREPROCESSING_ERROR"
    
    def __init__(self, page_index: int, reason: str):
        super().__init__(f"Could not preprocess page {page_index + 1}: {reason}")
        self.page_index = page_index


class SchemeAssignmentError(PipelineException):
    """No marking task could be paired with a marking scheme"""
    error_code = "SCHEME_ASSIGNMENT_ERROR"


class MarkingError(PipelineException):
    """Every marking task failed"""
    error_code = "MARKING_ERROR"
    
    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class CollaboratorError(PipelineException):
    """An external collaborator (OCR, scoring, storage) call failed"""
    error_code = "COLLABORATOR_ERROR"
    
    def __init__(self, collaborator: str, cause: Exception):
        from .errors import classify_error
        
        self.collaborator = collaborator
        self.cause = cause
        self.category = classify_error(cause)
        super().__init__(f"{collaborator} failed: {cause}")
