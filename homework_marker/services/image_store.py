"""
Image Store Service
Persists output pages and returns references the client can fetch
"""
import asyncio
import logging
from pathlib import Path
from typing import Union

from ..config import settings
from ..pipeline.orchestrator import ImageStore
from ..utils import ensure_directory, safe_filename

logger = logging.getLogger(__name__)


class LocalImageStore(ImageStore):
    """
    Writes images under the exports directory, which the API serves at
    `/static/exports`.
    """

    def __init__(
        self,
        root: Union[str, Path] = None,
        url_prefix: str = "/static/exports"
    ):
        self.root = Path(root or settings.EXPORTS_DIR)
        self.url_prefix = url_prefix.rstrip("/")

    def _write(self, submission_id: str, name: str, data: bytes) -> str:
        folder_name = safe_filename(submission_id)
        folder = ensure_directory(self.root / "submissions" / folder_name)
        filename = safe_filename(name)
        (folder / filename).write_bytes(data)
        return f"{self.url_prefix}/submissions/{folder_name}/{filename}"

    async def save(self, submission_id: str, name: str, data: bytes) -> str:
        url = await asyncio.to_thread(self._write, submission_id, name, data)
        logger.debug(f"Stored {name} for submission {submission_id}")
        return url
