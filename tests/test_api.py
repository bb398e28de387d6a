"""
API tests for the FastAPI application
"""
import json

import pytest
from fastapi.testclient import TestClient

from homework_marker.core import PIPELINE_STAGES
from homework_marker.main import app
from homework_marker.pipeline import ClassificationResult, create_pipeline
from homework_marker.routes.marking import get_pipeline
from homework_marker.services import marking_service

from conftest import (
    Q21_TEXT,
    FakeClassifier,
    FakeExtractor,
    FakeRasterizer,
    FakeScorer,
    MemoryImageStore,
    make_png,
)


def parse_events(body: str):
    return [
        json.loads(chunk[len("data: "):])
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


@pytest.fixture
def client(corpus, monkeypatch):
    monkeypatch.setattr(marking_service, "_corpus", corpus)

    def fake_pipeline():
        return create_pipeline(
            rasterizer=FakeRasterizer([]),
            classifier=FakeClassifier(ClassificationResult(
                question_text=Q21_TEXT, question_number="21", paper_code="1MA1/1H"
            )),
            extractor=FakeExtractor({0: [{"text": "x = 3, y = 2", "bbox": [10, 10, 60, 20]}]}),
            corpus=corpus,
            scorer=FakeScorer(default={
                "awarded_marks": 5,
                "annotations": [{"block_id": "p0_ocr_0", "kind": "tick", "text": "A1"}],
            }),
            image_store=MemoryImageStore(),
        )

    app.dependency_overrides[get_pipeline] = fake_pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestGeneralEndpoints:
    """Test cases for root and health endpoints"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "Homework Marker API"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


class TestMarkingEndpoints:
    """Test cases for /api/marking"""

    def test_stages(self, client):
        data = client.get("/api/marking/stages").json()
        assert data["steps"] == PIPELINE_STAGES
        assert data["total"] == len(PIPELINE_STAGES)

    def test_submit_streams_progress(self, client):
        response = client.post(
            "/api/marking/submit",
            files=[("files", ("work.png", make_png(), "image/png"))],
            data={"session_id": "s-9", "custom_text": "Week 3"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")

        events = parse_events(response.text)
        progress = [e for e in events if "step" in e]
        terminal = [e for e in events if "type" in e]

        assert progress[0]["steps"] == PIPELINE_STAGES
        assert [e["step"] for e in progress] == sorted(e["step"] for e in progress)
        assert len(terminal) == 1
        assert terminal[0]["type"] == "complete"

        result = terminal[0]["result"]
        assert result["sessionId"] == "s-9"
        assert result["customText"] == "Week 3"
        assert result["totalScore"] == {"awardedMarks": 5, "totalMarks": 5}
        assert result["outputFormat"] == "images"

    def test_submit_invalid_combination_streams_error(self, client):
        response = client.post(
            "/api/marking/submit",
            files=[
                ("files", ("a.pdf", b"%PDF-1.4", "application/pdf")),
                ("files", ("b.png", make_png(), "image/png")),
            ],
        )

        events = parse_events(response.text)
        assert events[-1]["type"] == "error"
        assert events[-2]["isError"] is True
        assert events[-2]["step"] == 0

    def test_submit_requires_files(self, client):
        assert client.post("/api/marking/submit").status_code == 422

    def test_submit_without_llm_provider(self, client, monkeypatch):
        app.dependency_overrides.clear()

        def broken(model=None):
            raise ValueError("Unknown LLM provider: none")

        monkeypatch.setattr(marking_service, "create_pipeline", broken)
        response = client.post(
            "/api/marking/submit",
            files=[("files", ("work.png", make_png(), "image/png"))],
        )

        assert response.status_code == 503
        assert response.json() == {
            "success": False,
            "error": "Service 'LLM provider' is unavailable",
            "error_code": "SERVICE_UNAVAILABLE",
        }


class TestCorpusEndpoints:
    """Test cases for /api/corpus"""

    def test_list_papers(self, client):
        data = client.get("/api/corpus/papers").json()
        assert data["total"] == 2
        assert {p["paper_code"] for p in data["papers"]} == {"1MA1/1H", "8300/2F"}

    def test_get_paper_with_slash_in_code(self, client):
        data = client.get("/api/corpus/papers/1MA1/1H").json()
        assert data["paper_code"] == "1MA1/1H"
        assert data["metadata"]["tier"] == "Higher"

    def test_missing_paper(self, client):
        response = client.get("/api/corpus/papers/UNKNOWN")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "Exam paper 'UNKNOWN' not found",
            "error_code": "NOT_FOUND",
        }


class TestConfigEndpoints:
    """Test cases for /api/config"""

    def test_config(self, client):
        data = client.get("/api/config/").json()
        assert data["acceptance_threshold"] == 0.5
        assert data["rescue_threshold"] == 0.3

    def test_models(self, client):
        data = client.get("/api/config/models").json()
        assert data["default"] in data["models"]
