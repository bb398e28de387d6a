"""
Unit tests for the JSON exam corpus
"""
import json

from homework_marker.services.exam_corpus import JsonExamCorpus

from conftest import SAMPLE_CORPUS


class TestCandidates:
    """Test cases for candidate construction"""

    def test_candidates_in_file_order(self, corpus):
        ids = [c.candidate_id for c in corpus.candidates()]
        # Question 3 has no stem text of its own, only parts
        assert ids == ["1MA1/1H:3a", "1MA1/1H:3b", "1MA1/1H:12", "1MA1/1H:21", "8300/2F:7"]
        assert [c.corpus_order for c in corpus.candidates()] == [0, 1, 2, 3, 4]

    def test_candidates_by_paper(self, corpus):
        assert [c.key for c in corpus.candidates("8300/2F")] == ["7"]
        assert corpus.candidates("UNKNOWN") == []

    def test_candidate_metadata(self, corpus):
        candidate = corpus.candidates("1MA1/1H")[0]
        assert candidate.exam_board == "Pearson Edexcel"
        assert candidate.tier == "Higher"
        assert candidate.is_sub_question


class TestSchemeLookup:
    """Test cases for marking scheme lookup"""

    def test_exact_key(self, corpus):
        scheme = corpus.lookup_scheme("1MA1/1H", "12")
        assert scheme["question_key"] == "12"
        assert scheme["answer"] == "9"

    def test_leading_zero_is_ignored(self, corpus):
        assert corpus.lookup_scheme("1MA1/1H", "012")["question_key"] == "12"

    def test_alt_key(self, corpus):
        scheme = corpus.lookup_scheme("1MA1/1H", "21")
        assert scheme["question_key"] == "21alt"
        assert len(scheme["marks"]) == 5

    def test_sub_part(self, corpus):
        assert corpus.lookup_scheme("1MA1/1H", "3", "a")["question_key"] == "3a"
        assert corpus.lookup_scheme("1MA1/1H", "3", "c") is None

    def test_composite_from_sub_keys(self, corpus):
        scheme = corpus.lookup_scheme("1MA1/1H", "3")

        assert scheme["composite"] is True
        assert scheme["parts"] == ["3a", "3b"]
        assert [m["part"] for m in scheme["marks"]] == ["a", "a", "b", "b"]
        assert scheme["answer"] == "(a) x^2 + 2x - 15; (b) 3x(2x + 3)"

    def test_unknown_paper(self, corpus):
        assert corpus.lookup_scheme("8300/2F", "7") is None
        assert corpus.lookup_scheme("NOPE", "1") is None


class TestLoading:
    """Test cases for loading and read-only views"""

    def test_missing_file_gives_empty_corpus(self, tmp_path):
        corpus = JsonExamCorpus.from_json_file(tmp_path / "missing.json")
        assert corpus.candidates() == []
        assert corpus.list_papers() == []

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "corpus.json"
        path.write_text(json.dumps(SAMPLE_CORPUS), encoding="utf-8")

        corpus = JsonExamCorpus.from_json_file(path)
        assert len(corpus.candidates()) == 5

    def test_list_papers(self, corpus):
        papers = {p["paper_code"]: p for p in corpus.list_papers()}
        assert papers["1MA1/1H"]["has_marking_scheme"] is True
        assert papers["8300/2F"]["has_marking_scheme"] is False
        assert papers["1MA1/1H"]["question_count"] == 3

    def test_get_paper(self, corpus):
        assert corpus.get_paper("8300/2F")["metadata"]["tier"] == "Foundation"
        assert corpus.get_paper("missing") is None
