"""
Unit tests for the question detection engine
"""
import pytest

from homework_marker.pipeline import detection
from homework_marker.pipeline.detection import (
    DetectionConfig,
    QuestionDetector,
    canonical_key,
    filter_sub_questions,
    matches_sub_question,
    split_question_key,
)
from homework_marker.pipeline.models import Found, Rejected, Rescued, detection_to_dict

from conftest import Q21_TEXT

Q3A_TEXT = "Expand and simplify (x + 5)(x - 3)"
Q3B_TEXT = "Factorise fully 6x^2 + 9x"
Q12_TEXT = "Work out the value of 27^(2/3). Give your answer as an integer."
Q7_TEXT = "Work out the area of a rectangle with length 8 cm and width 5 cm"


@pytest.fixture
def similarity_table(monkeypatch):
    """Replace the similarity function with a per-candidate score table"""
    table = {}

    def fake_similarity(text, candidate_text):
        return table.get(candidate_text, 0.1)

    monkeypatch.setattr(detection, "calculate_similarity", fake_similarity)
    return table


class TestSubQuestionFilter:
    """Test cases for sub-question prefix matching"""

    def test_filter(self):
        candidates = ["1a", "1b", "10", "11a", "1(i)", "1"]
        assert filter_sub_questions("1", candidates) == ["1a", "1b", "1(i)"]

    def test_two_digit_hint(self):
        assert filter_sub_questions("10", ["10a", "10b", "100", "1"]) == ["10a", "10b"]

    def test_digit_after_prefix_is_not_a_part(self):
        assert not matches_sub_question("2", "21")
        assert not matches_sub_question("1", "10a")

    def test_nested_parts(self):
        assert matches_sub_question("3", "3a(i)")
        assert not matches_sub_question("3", "3-a")

    def test_empty_hint(self):
        assert filter_sub_questions("", ["1a"]) == []

    def test_split_question_key(self):
        assert split_question_key("12(ii)") == ("12", "ii")
        assert split_question_key("3A") == ("3", "a")
        assert split_question_key("007") == ("7", "")
        assert canonical_key("03(b)") == "3b"


class TestQuestionDetector:
    """Test cases for QuestionDetector with real similarity scoring"""

    def test_found_with_hints(self, corpus):
        detector = QuestionDetector(corpus)
        result = detector.detect(Q21_TEXT, "21", "1MA1/1H")

        assert isinstance(result, Found)
        assert result.found
        assert result.match.candidate_id == "1MA1/1H:21"
        assert result.match.confidence == 1.0
        assert result.match.total_marks == 5
        assert result.match.marking_scheme["question_key"] == "21alt"

    def test_audit_trail_is_ranked(self, corpus):
        result = QuestionDetector(corpus).detect(Q21_TEXT)

        scores = [score for _, score in result.audit_trail]
        assert len(result.audit_trail) == len(corpus.candidates())
        assert result.audit_trail[0][0] == "1MA1/1H:21"
        assert scores == sorted(scores, reverse=True)

    def test_idempotent(self, corpus):
        detector = QuestionDetector(corpus)
        first = detector.detect(Q3A_TEXT, "3", None)
        second = detector.detect(Q3A_TEXT, "3", None)

        assert first.match.candidate_id == second.match.candidate_id
        assert first.match.confidence == second.match.confidence
        assert first.audit_trail == second.audit_trail

    def test_empty_corpus_rejects(self):
        from homework_marker.services.exam_corpus import JsonExamCorpus

        result = QuestionDetector(JsonExamCorpus()).detect(Q21_TEXT)
        assert isinstance(result, Rejected)
        assert result.match is None
        assert "no candidate" in result.reason

    def test_sub_part_fallback_floor(self, corpus):
        """A hinted sub-question gets the fallback score when similarity is weak"""
        config = DetectionConfig(sub_part_fallback_min_similarity=0.0)
        result = QuestionDetector(corpus, config).detect("zzzz", "3b", "1MA1/1H")

        assert isinstance(result, Found)
        assert result.match.candidate_id == "1MA1/1H:3b"
        assert result.match.confidence == pytest.approx(0.5)

    def test_sub_part_fallback_needs_minimum_similarity(self, corpus):
        result = QuestionDetector(corpus).detect("zzzz", "3b", "1MA1/1H")
        assert isinstance(result, Rejected)


class TestAcceptancePolicy:
    """Test cases for accept / rescue / reject with controlled scores"""

    def test_main_question_hint_includes_sub_questions(self, corpus, similarity_table):
        similarity_table.update({Q3A_TEXT: 0.6, Q3B_TEXT: 0.7, Q21_TEXT: 0.99})
        result = QuestionDetector(corpus).detect("text", "3", "1MA1/1H")

        assert result.match.candidate_id == "1MA1/1H:3b"
        assert {cid for cid, _ in result.audit_trail} == {"1MA1/1H:3a", "1MA1/1H:3b"}

    def test_sub_question_hint_is_exact(self, corpus, similarity_table):
        similarity_table.update({Q3A_TEXT: 0.9, Q3B_TEXT: 0.45})
        result = QuestionDetector(corpus).detect("text", "3(b)", None)

        assert isinstance(result, Found)
        assert result.match.candidate_id == "1MA1/1H:3b"
        assert [cid for cid, _ in result.audit_trail] == ["1MA1/1H:3b"]

    def test_sub_question_threshold_is_lower(self, corpus, similarity_table):
        similarity_table.update({Q3B_TEXT: 0.42, Q12_TEXT: 0.42})
        detector = QuestionDetector(corpus)

        assert detector.detect("text", "3b", None).found
        assert not isinstance(detector.detect("text", "12", "1MA1/1H"), Found)

    def test_ties_break_by_corpus_order(self, corpus, similarity_table):
        similarity_table.update({Q3A_TEXT: 0.8, Q3B_TEXT: 0.8, Q12_TEXT: 0.8, Q21_TEXT: 0.8, Q7_TEXT: 0.8})
        result = QuestionDetector(corpus).detect("text")
        assert result.match.candidate_id == "1MA1/1H:3a"

    def test_rescue_drops_paper_hint(self, corpus, similarity_table):
        similarity_table.update({Q7_TEXT: 0.35, Q21_TEXT: 0.9})
        result = QuestionDetector(corpus).detect("text", None, "8300/2F")

        assert isinstance(result, Rescued)
        assert result.found
        assert result.match.candidate_id == "1MA1/1H:21"
        assert "8300/2F" in result.note
        assert result.audit_trail[0] == ("1MA1/1H:21", 0.9)

    def test_rescue_drops_question_hint_without_paper_hint(self, corpus, similarity_table):
        similarity_table.update({Q12_TEXT: 0.4, Q21_TEXT: 0.8})
        result = QuestionDetector(corpus).detect("text", "12", None)

        assert isinstance(result, Rescued)
        assert result.match.candidate_id == "1MA1/1H:21"
        assert "question-number hint" in result.note

    def test_below_rescue_rejects_immediately(self, corpus, similarity_table):
        similarity_table.update({Q7_TEXT: 0.2, Q21_TEXT: 0.9})
        result = QuestionDetector(corpus).detect("text", None, "8300/2F")

        assert isinstance(result, Rejected)
        assert result.best_score == pytest.approx(0.2)
        assert "rescue threshold" in result.reason

    def test_failed_rescue_rejects(self, corpus, similarity_table):
        similarity_table.update({Q7_TEXT: 0.35})
        result = QuestionDetector(corpus).detect("text", None, "8300/2F")

        assert isinstance(result, Rejected)
        assert "broadened search" in result.reason

    def test_monotonic_acceptance(self, corpus, similarity_table):
        """Raising the threshold never turns a rejection into a match"""
        similarity_table.update({Q21_TEXT: 0.62, Q12_TEXT: 0.55})
        outcomes = []
        for threshold in (0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9):
            config = DetectionConfig(acceptance_threshold=threshold)
            outcomes.append(QuestionDetector(corpus, config).detect("text", "21", None).found)

        assert outcomes[0]
        assert not outcomes[-1]
        first_miss = outcomes.index(False)
        assert not any(outcomes[first_miss:])

    def test_serialisation_hides_audit_trail_by_default(self, corpus, similarity_table):
        similarity_table.update({Q21_TEXT: 0.9})
        result = QuestionDetector(corpus).detect("text", "21", None)

        data = detection_to_dict(result)
        assert data["status"] == "found"
        assert data["candidateId"] == "1MA1/1H:21"
        assert "auditTrail" not in data
        assert detection_to_dict(result, include_audit=True)["auditTrail"][0]["candidateId"] == "1MA1/1H:21"
