"""
Question Detection Engine
Fuzzy-matches extracted text against the exam-question corpus
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .models import AuditTrail, DetectionMatch, DetectionResult, Found, Rejected, Rescued
from .similarity import calculate_similarity

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"^\d+")
_SUB_REMAINDER = re.compile(r"^(?:[a-z0-9]+|\([a-z0-9]+\))+$", re.IGNORECASE)


def matches_sub_question(hint: str, candidate: str) -> bool:
    """
    Whether `candidate` is a sub-question of question `hint`.

    The candidate must start with the hint, the next character must not be
    a digit (so "10" is not a part of "1"), and the remainder must be
    alphanumeric or parenthetical ("1a", "1(i)").
    """
    hint = hint.strip()
    candidate = candidate.strip()
    if not hint or not candidate.startswith(hint) or len(candidate) == len(hint):
        return False
    if candidate[len(hint)].isdigit():
        return False
    return bool(_SUB_REMAINDER.match(candidate[len(hint):]))


def filter_sub_questions(hint: str, candidates: List[str]) -> List[str]:
    """Candidates that are sub-questions of `hint`, in input order"""
    return [c for c in candidates if matches_sub_question(hint, c)]


def split_question_key(key: str) -> Tuple[str, str]:
    """
    Split "12(ii)" into ("12", "ii"), "3a" into ("3", "a").

    Leading zeros are stripped from the numeric part.
    """
    key = key.strip()
    match = _LEADING_DIGITS.match(key)
    if not match:
        return key, ""
    number = match.group(0).lstrip("0") or "0"
    sub_part = key[match.end():].replace("(", "").replace(")", "").lower()
    return number, sub_part


def canonical_key(key: str) -> str:
    number, sub_part = split_question_key(key)
    return f"{number}{sub_part}"


def is_sub_question_hint(hint: Optional[str]) -> bool:
    return bool(hint) and bool(re.search(r"[a-z]", hint, re.IGNORECASE))


@dataclass(frozen=True)
class CorpusCandidate:
    """One matchable question or sub-question in the corpus"""
    paper_code: str
    question_number: str
    sub_part: str
    text: str
    marks: int
    corpus_order: int
    exam_board: str = ""
    tier: str = ""
    exam_series: str = ""

    @property
    def key(self) -> str:
        return f"{self.question_number}{self.sub_part}"

    @property
    def candidate_id(self) -> str:
        return f"{self.paper_code}:{self.key}"

    @property
    def is_sub_question(self) -> bool:
        return bool(self.sub_part)


class ExamCorpus(ABC):
    """Queryable exam-question and marking-scheme corpus"""

    @abstractmethod
    def candidates(self, paper_code: Optional[str] = None) -> List[CorpusCandidate]:
        """Matchable candidates, optionally restricted to one paper"""
        pass

    @abstractmethod
    def lookup_scheme(
        self,
        paper_code: str,
        question_number: str,
        sub_part: str = ""
    ) -> Optional[Dict[str, Any]]:
        """Marking scheme for a question, or None"""
        pass


@dataclass
class DetectionConfig:
    """Thresholds for accepting a match"""
    acceptance_threshold: float = 0.50
    sub_question_acceptance_threshold: float = 0.40
    rescue_threshold: float = 0.30
    sub_part_fallback_score: float = 0.50
    sub_part_fallback_min_similarity: float = 0.20

    def threshold_for(self, candidate: CorpusCandidate) -> float:
        if candidate.is_sub_question:
            return self.sub_question_acceptance_threshold
        return self.acceptance_threshold


class QuestionDetector:
    """
    Matches candidate text against the corpus.

    Pipeline per call:
    1. Restrict candidates by paper hint and question-number hint
    2. Score each candidate, rank into an audit trail
    3. Accept, rescue with a broadened search, or reject
    4. Attach the marking scheme of the accepted question
    """

    def __init__(self, corpus: ExamCorpus, config: Optional[DetectionConfig] = None):
        self.corpus = corpus
        self.config = config or DetectionConfig()

    def detect(
        self,
        text: str,
        question_hint: Optional[str] = None,
        paper_hint: Optional[str] = None,
    ) -> DetectionResult:
        """
        Detect which corpus question `text` answers.

        Args:
            text: Global question-context text or concatenated page text
            question_hint: Question number read from the page ("21", "3b")
            paper_hint: Paper code read from the page

        Returns:
            Found, Rescued or Rejected, each with the ranked audit trail
        """
        question_hint = question_hint.strip() if question_hint else None
        paper_hint = paper_hint.strip() if paper_hint else None

        best, score, trail = self._score(text, question_hint, paper_hint)

        if best is not None and score >= self.config.threshold_for(best):
            return Found(match=self._build_match(best, score), audit_trail=trail)

        if best is None or score < self.config.rescue_threshold:
            return Rejected(
                reason=self._rejection_reason(best, score, question_hint),
                best_score=score,
                audit_trail=trail,
            )

        # Broadened retry: drop the paper hint, or the question hint when
        # there was no paper hint to drop
        if paper_hint:
            retry_question, retry_paper = question_hint, None
            note = f"accepted after searching all papers (paper hint '{paper_hint}' dropped)"
        else:
            retry_question, retry_paper = None, None
            note = "accepted after searching without the question-number hint"

        if (retry_question, retry_paper) != (question_hint, paper_hint):
            retry_best, retry_score, retry_trail = self._score(text, retry_question, retry_paper)
            if retry_best is not None and retry_score >= self.config.threshold_for(retry_best):
                logger.warning(
                    f"Rescued detection {retry_best.candidate_id} "
                    f"(score {score:.3f} -> {retry_score:.3f}): {note}"
                )
                return Rescued(
                    match=self._build_match(retry_best, retry_score),
                    note=note,
                    audit_trail=retry_trail,
                )

        return Rejected(
            reason=(
                f"best candidate {best.candidate_id} scored {score:.3f}, "
                f"below acceptance {self.config.threshold_for(best):.2f} even after broadened search"
            ),
            best_score=score,
            audit_trail=trail,
        )

    def _candidate_pool(
        self,
        question_hint: Optional[str],
        paper_hint: Optional[str],
    ) -> List[CorpusCandidate]:
        candidates = self.corpus.candidates(paper_hint)
        if not question_hint:
            return candidates

        if is_sub_question_hint(question_hint):
            wanted = canonical_key(question_hint)
            return [c for c in candidates if c.key == wanted]

        base = canonical_key(question_hint)
        return [
            c for c in candidates
            if c.key == base or matches_sub_question(base, c.key)
        ]

    def _score(
        self,
        text: str,
        question_hint: Optional[str],
        paper_hint: Optional[str],
    ) -> Tuple[Optional[CorpusCandidate], float, AuditTrail]:
        pool = self._candidate_pool(question_hint, paper_hint)
        hinted_key = canonical_key(question_hint) if is_sub_question_hint(question_hint) else None

        scored: List[Tuple[CorpusCandidate, float]] = []
        for candidate in pool:
            score = calculate_similarity(text, candidate.text)
            if (
                hinted_key
                and candidate.key == hinted_key
                and score >= self.config.sub_part_fallback_min_similarity
            ):
                score = max(score, self.config.sub_part_fallback_score)
            scored.append((candidate, score))

        # Deterministic ranking: score, then corpus order
        scored.sort(key=lambda item: (-item[1], item[0].corpus_order))
        trail = [(c.candidate_id, s) for c, s in scored]

        if not scored:
            return None, 0.0, trail
        best, score = scored[0]
        return best, score, trail

    def _build_match(self, candidate: CorpusCandidate, score: float) -> DetectionMatch:
        scheme = self.corpus.lookup_scheme(
            candidate.paper_code, candidate.question_number, candidate.sub_part
        )
        if scheme is None:
            logger.warning(f"No marking scheme found for {candidate.candidate_id}")
        return DetectionMatch(
            candidate_id=candidate.candidate_id,
            question_number=candidate.question_number,
            sub_question_number=candidate.sub_part,
            exam_board=candidate.exam_board,
            paper_code=candidate.paper_code,
            tier=candidate.tier,
            exam_series=candidate.exam_series,
            total_marks=candidate.marks,
            confidence=max(0.0, min(1.0, score)),
            corpus_order=candidate.corpus_order,
            marking_scheme=scheme,
        )

    @staticmethod
    def _rejection_reason(
        best: Optional[CorpusCandidate],
        score: float,
        question_hint: Optional[str],
    ) -> str:
        if best is None:
            if question_hint:
                return f"no corpus question matches hint '{question_hint}'"
            return "exam corpus has no candidate questions"
        return f"best candidate {best.candidate_id} scored {score:.3f}, below rescue threshold"
