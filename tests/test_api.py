"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from soundslike.api import create_app
from soundslike.config import SoundsLikeConfig
from soundslike.correction import CorrectionContext


@pytest.fixture
def client(tmp_path):
    context_dir = tmp_path / "context"
    (context_dir / "projects").mkdir(parents=True)
    (context_dir / "projects" / "alpha.yaml").write_text(
        "id: alpha\nname: Alphanova\nsounds_like: [alfa nova, protocol, shared]\n"
    )
    (context_dir / "projects" / "beta.yaml").write_text(
        "id: beta\nname: Betamax\nsounds_like: [shared, meeting]\n"
    )
    context = CorrectionContext.from_paths([context_dir], SoundsLikeConfig())
    return TestClient(create_app(context))


class TestApi:
    """Test the HTTP endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "soundslike API"

    def test_health_reports_tiers(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["total"] == 5
        assert data["tier1"] == 1
        assert data["tier2"] == 3
        assert data["tier3"] == 1
        assert data["collisions"] == 1

    def test_correct(self, client):
        response = client.post("/correct", json={
            "text": "alfa nova and the protocol",
            "project": "alpha",
            "confidence": 0.9,
            "metadata": {"labels": ["standup"]},
        })
        data = response.json()

        assert response.status_code == 200
        assert data["text"] == "Alphanova and the Alphanova"
        assert data["replacements_made"] is True
        assert data["stats"]["tier1_replacements"] == 1
        assert data["stats"]["tier2_replacements"] == 1

    def test_metadata_does_not_override_classification(self, client):
        data = client.post("/correct", json={
            "text": "the protocol",
            "project": "alpha",
            "confidence": 0.9,
            "metadata": {"project": "beta", "confidence": 0.1, "labels": ["standup"]},
        }).json()

        assert data["text"] == "the Alphanova"
        assert data["stats"]["project_context"] == "alpha"
        assert data["stats"]["classification_confidence"] == 0.9

    def test_correct_without_classification(self, client):
        data = client.post("/correct", json={"text": "the protocol"}).json()

        assert data["text"] == "the protocol"
        assert data["stats"]["total_replacements"] == 0

    def test_correct_rejects_bad_confidence(self, client):
        response = client.post("/correct", json={"text": "x", "confidence": 1.5})
        assert response.status_code == 422

    def test_decide(self, client):
        data = client.post("/decide", json={"sounds_like": "shared", "project": "alpha", "confidence": 0.7}).json()

        assert data["should_replace"] is True
        assert data["mapping"]["entity_id"] == "alpha"

    def test_decide_tier3(self, client):
        data = client.post("/decide", json={"sounds_like": "meeting", "project": "beta", "confidence": 1.0}).json()
        assert data["should_replace"] is False

    def test_mappings_filter(self, client):
        data = client.get("/mappings", params={"tier": 1}).json()
        assert [m["sounds_like"] for m in data] == ["alfa nova"]

    def test_mappings_bad_tier(self, client):
        assert client.get("/mappings", params={"tier": 4}).status_code == 422

    def test_collisions(self, client):
        data = client.get("/collisions").json()

        assert len(data) == 1
        assert {m["entity_id"] for m in data[0]["mappings"]} == {"alpha", "beta"}

    def test_single_collision(self, client):
        assert client.get("/collisions/Shared").status_code == 200
        assert client.get("/collisions/alfa nova").status_code == 404
