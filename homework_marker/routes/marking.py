"""
Marking API routes
Accepts homework uploads and streams pipeline progress as Server-Sent Events
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse

from ..core import ServiceUnavailableException
from ..pipeline import MarkingPipeline, SubmissionOptions, UploadedFile, sse_stream
from ..schemas import StagesResponse
from ..services import marking_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline(model: Optional[str] = Form(default=None)) -> MarkingPipeline:
    """Pipeline for the requested model"""
    try:
        return marking_service.create_pipeline(model)
    except Exception as e:
        logger.error(f"Could not build marking pipeline: {e}")
        raise ServiceUnavailableException("LLM provider") from e


@router.post("/submit")
async def submit_homework(
    files: List[UploadFile] = File(...),
    session_id: Optional[str] = Form(default=None),
    custom_text: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    pipeline: MarkingPipeline = Depends(get_pipeline),
):
    """
    Mark uploaded homework.

    Accepts one PDF, or one or more images. The response is an
    `text/event-stream` of progress frames, ending with a single
    `{"type": "complete", "result": ...}` or `{"type": "error", "message": ...}`.
    """
    uploaded = []
    for file in files:
        uploaded.append(UploadedFile(
            filename=file.filename or "upload",
            content_type=file.content_type or "",
            data=await file.read(),
        ))
    logger.info(f"Received {len(uploaded)} file(s) for marking")

    options = SubmissionOptions(session_id=session_id, custom_text=custom_text, model=model)
    channel, task = marking_service.start(pipeline, uploaded, options)

    return StreamingResponse(
        sse_stream(channel, task),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/stages", response_model=StagesResponse)
async def get_stages():
    """
    Get the ordered list of pipeline steps used in progress frames
    """
    steps = marking_service.get_stages()
    return StagesResponse(steps=steps, total=len(steps))
