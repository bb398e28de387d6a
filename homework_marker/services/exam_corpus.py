"""
Exam Corpus Module
==================
Read-only exam-paper and marking-scheme corpus loaded from JSON.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..pipeline.detection import CorpusCandidate, ExamCorpus, matches_sub_question, split_question_key

logger = logging.getLogger(__name__)


class JsonExamCorpus(ExamCorpus):
    """
    Exam corpus backed by a JSON document of the form::

        {
          "exam_papers": [
            {"metadata": {"exam_board": ..., "exam_code": ..., "tier": ..., "exam_series": ...},
             "questions": [{"question_number": "21", "question_text": ..., "marks": 5,
                            "sub_questions": [{"question_part": "a", "question_text": ..., "marks": 2}]}]}
          ],
          "marking_schemes": [
            {"exam_details": {"paper_code": ...},
             "questions": {"21": {"marks": [{"mark": "M1", "answer": ..., "comments": ...}],
                                  "answer": ...}}}
          ]
        }

    Candidate order follows file order and is the corpus key order.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = data or {}
        self._papers: List[Dict[str, Any]] = list(data.get("exam_papers", []))
        self._schemes: Dict[str, Dict[str, Any]] = {}
        for scheme in data.get("marking_schemes", []):
            code = (scheme.get("exam_details") or {}).get("paper_code")
            if not code:
                logger.warning("Skipping marking scheme without exam_details.paper_code")
                continue
            self._schemes[code] = scheme
        self._candidates = self._build_candidates()
        logger.info(
            f"Loaded exam corpus: {len(self._papers)} papers, "
            f"{len(self._schemes)} marking schemes, {len(self._candidates)} candidates"
        )

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "JsonExamCorpus":
        """
        Load the corpus from disk; a missing file yields an empty corpus.
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Exam corpus not found at {path}; detection will reject everything")
            return cls()
        with open(path, 'r', encoding='utf-8') as f:
            return cls(json.load(f))

    def _build_candidates(self) -> List[CorpusCandidate]:
        candidates = []
        for paper in self._papers:
            metadata = paper.get("metadata") or {}
            paper_code = metadata.get("exam_code")
            if not paper_code:
                logger.warning("Skipping exam paper without metadata.exam_code")
                continue
            common = {
                "paper_code": paper_code,
                "exam_board": metadata.get("exam_board", ""),
                "tier": metadata.get("tier", ""),
                "exam_series": metadata.get("exam_series", ""),
            }
            for question in paper.get("questions", []):
                raw_number = str(question.get("question_number") or "").strip()
                if not raw_number:
                    continue
                number, _ = split_question_key(raw_number)
                text = question.get("question_text") or ""
                if text:
                    candidates.append(CorpusCandidate(
                        question_number=number,
                        sub_part="",
                        text=text,
                        marks=int(question.get("marks") or 0),
                        corpus_order=len(candidates),
                        **common,
                    ))
                for sub in question.get("sub_questions", []):
                    part = str(sub.get("question_part") or "").strip("() ").lower()
                    sub_text = sub.get("question_text") or ""
                    if not part or not sub_text:
                        continue
                    candidates.append(CorpusCandidate(
                        question_number=number,
                        sub_part=part,
                        text=sub_text,
                        marks=int(sub.get("marks") or 0),
                        corpus_order=len(candidates),
                        **common,
                    ))
        return candidates

    def candidates(self, paper_code: Optional[str] = None) -> List[CorpusCandidate]:
        if paper_code is None:
            return list(self._candidates)
        return [c for c in self._candidates if c.paper_code == paper_code]

    def lookup_scheme(
        self,
        paper_code: str,
        question_number: str,
        sub_part: str = ""
    ) -> Optional[Dict[str, Any]]:
        """
        Find the scheme entry for a question.

        Tries the exact key, then the "alt" variant, then (for main
        questions) a composite built from the question's sub-keys.
        """
        scheme = self._schemes.get(paper_code)
        if scheme is None:
            return None
        questions: Dict[str, Any] = scheme.get("questions") or {}

        number, _ = split_question_key(question_number)
        key = f"{number}{sub_part}"
        for candidate_key in (key, f"{key}alt"):
            entry = questions.get(candidate_key)
            if entry is not None:
                return {"question_key": candidate_key, **entry}

        if sub_part:
            return None

        sub_keys = [k for k in questions if matches_sub_question(number, k) and not k.endswith("alt")]
        if not sub_keys:
            return None

        marks = []
        answers = []
        for sub_key in sub_keys:
            entry = questions[sub_key]
            part = sub_key[len(number):]
            for mark in entry.get("marks", []):
                labelled = dict(mark)
                labelled["part"] = part
                marks.append(labelled)
            if entry.get("answer"):
                answers.append(f"({part}) {entry['answer']}")
        return {
            "question_key": number,
            "composite": True,
            "parts": sub_keys,
            "marks": marks,
            "answer": "; ".join(answers),
        }

    # ----- Read-only views for the API -----

    def list_papers(self) -> List[Dict[str, Any]]:
        papers = []
        for paper in self._papers:
            metadata = paper.get("metadata") or {}
            code = metadata.get("exam_code")
            papers.append({
                "paper_code": code,
                "exam_board": metadata.get("exam_board", ""),
                "tier": metadata.get("tier", ""),
                "exam_series": metadata.get("exam_series", ""),
                "question_count": len(paper.get("questions", [])),
                "has_marking_scheme": code in self._schemes,
            })
        return papers

    def get_paper(self, paper_code: str) -> Optional[Dict[str, Any]]:
        for paper in self._papers:
            if (paper.get("metadata") or {}).get("exam_code") == paper_code:
                return paper
        return None
