"""
Collaborator error classification.

Failures coming back from OCR, scoring or storage calls are sorted into a
small set of categories by message pattern, and each category maps to a
message that is safe to show the student. Underlying detail is only appended
in development mode.
"""
import asyncio
import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Categories of collaborator failure"""
    QUOTA = "quota"
    TIMEOUT = "timeout"
    AUTH = "auth"
    NETWORK = "network"
    GENERIC = "generic"


CATEGORY_MESSAGES = {
    ErrorCategory.QUOTA: "The AI service is busy or its usage quota has been reached. Please try again in a few minutes.",
    ErrorCategory.TIMEOUT: "The request took too long to process. Please try again with fewer or smaller pages.",
    ErrorCategory.AUTH: "The AI service rejected our credentials.",
    ErrorCategory.NETWORK: "Could not reach the AI service. Please check your connection and try again.",
    ErrorCategory.GENERIC: "Something went wrong while marking your work.",
}

_PATTERNS = [
    (ErrorCategory.QUOTA, ("429", "rate limit", "quota", "too many requests", "resource exhausted")),
    (ErrorCategory.TIMEOUT, ("timed out", "timeout", "deadline exceeded")),
    (ErrorCategory.AUTH, ("401", "403", "unauthorized", "forbidden", "api key", "permission denied")),
    (ErrorCategory.NETWORK, ("network", "connection", "econnreset", "econnrefused", "enotfound", "dns")),
]

SUPPORT_SUFFIX = "Contact support if the problem persists."


def classify_error(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception by type and message pattern.
    
    Args:
        exc: Exception raised by a collaborator call
        
    Returns:
        Matching ErrorCategory, GENERIC when nothing matches
    """
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    
    category = getattr(exc, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    
    text = f"{type(exc).__name__} {exc}".lower()
    for candidate, patterns in _PATTERNS:
        if any(pattern in text for pattern in patterns):
            return candidate
    
    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.GENERIC


def format_error_message(exc: BaseException, debug: bool = False) -> str:
    """
    Build the message sent to the client in an error frame.
    
    Args:
        exc: Exception that aborted the pipeline
        debug: Development mode; exposes the underlying detail
        
    Returns:
        User-facing message
    """
    from .exceptions import CollaboratorError, MarkingError, PipelineException
    
    if isinstance(exc, CollaboratorError):
        return _category_message(exc.category, exc.cause, debug)
    if isinstance(exc, MarkingError) and exc.cause is not None:
        return _category_message(classify_error(exc.cause), exc.cause, debug)
    if isinstance(exc, PipelineException):
        return exc.user_message
    return _category_message(classify_error(exc), exc, debug)


def _category_message(category: ErrorCategory, cause: BaseException, debug: bool) -> str:
    message = CATEGORY_MESSAGES[category]
    if debug:
        return f"{message} ({type(cause).__name__}: {cause})"
    return f"{message} {SUPPORT_SUFFIX}"
