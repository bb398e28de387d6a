# Utils package
from .helpers import (
    ensure_directory,
    generate_submission_id,
    format_file_size,
    safe_filename,
)

__all__ = [
    "ensure_directory",
    "generate_submission_id",
    "format_file_size",
    "safe_filename",
]
