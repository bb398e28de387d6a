"""
Corpus API routes
Read-only views of the exam papers used for question detection
"""
from fastapi import APIRouter

from ..core import NotFoundException
from ..schemas import ErrorResponse, PaperDetailResponse, PaperListResponse, PaperSummary
from ..services import marking_service

router = APIRouter()


@router.get("/papers", response_model=PaperListResponse)
async def list_papers():
    """
    List exam papers in the corpus
    """
    papers = [PaperSummary(**p) for p in marking_service.corpus.list_papers()]
    return PaperListResponse(papers=papers, total=len(papers))


@router.get(
    "/papers/{paper_code:path}",
    response_model=PaperDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_paper(paper_code: str):
    """
    Get one exam paper with its questions
    """
    paper = marking_service.corpus.get_paper(paper_code)
    if paper is None:
        raise NotFoundException("Exam paper", paper_code)

    return PaperDetailResponse(
        paper_code=paper_code,
        metadata=paper.get("metadata") or {},
        questions=paper.get("questions") or [],
    )
