"""
Pattern Engine API Tests

Exercises the HTTP boundary with FastAPI's TestClient:
1. POST /v1/patterns/engine dispatch and error status codes
2. GET /v1/patterns listing
3. Activation routes and feedback history
4. Health endpoint
"""

import pytest
from fastapi.testclient import TestClient

from pattern_engine.engine_config import EngineConfig
from pattern_engine.learning_engine import PatternLearningEngine, get_pattern_engine
from pattern_engine.main import app
from pattern_engine.pattern_extractor import STYLE_PATTERN_NAME


@pytest.fixture
def client_for():
    """Build a TestClient bound to a given engine instance."""
    def _client(engine):
        app.dependency_overrides[get_pattern_engine] = lambda: engine
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, engine):
    return client_for(engine)


@pytest.fixture
def trained(engine, style_records):
    for record in style_records:
        engine.action_store.add_record(record)
    engine.train()
    return engine


# =============================================================================
# 1. Engine Endpoint
# =============================================================================

class TestEngineEndpoint:

    def test_train(self, client, engine, style_records):
        for record in style_records:
            engine.action_store.add_record(record)
        response = client.post("/v1/patterns/engine", json={"action": "train"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["inserted"] == [STYLE_PATTERN_NAME]

    def test_predict(self, client, trained):
        response = client.post("/v1/patterns/engine", json={
            "action": "predict",
            "context": {"file_path": "src/components/Card.tsx"},
        })
        assert response.status_code == 200
        body = response.json()
        assert body["prediction_count"] == 1
        assert body["predictions"][0]["pattern_name"] == STYLE_PATTERN_NAME

    def test_unknown_action_is_bad_request(self, client):
        response = client.post("/v1/patterns/engine", json={"action": "explode"})
        assert response.status_code == 400
        assert response.json()["code"] == "UNKNOWN_ACTION"

    def test_mistyped_context_is_bad_request(self, client):
        response = client.post("/v1/patterns/engine", json={
            "action": "predict",
            "context": {"file_types": 5},
        })
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_REQUEST"

    def test_missing_action_fails_validation(self, client):
        response = client.post("/v1/patterns/engine", json={"data": {}})
        assert response.status_code == 422

    def test_feedback_unknown_action_id(self, client):
        response = client.post("/v1/patterns/engine", json={
            "action": "feedback",
            "data": {"action_id": "missing", "verdict": "approved"},
        })
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_disabled_engine_forbidden(self, client_for, data_dir):
        disabled = PatternLearningEngine(config=EngineConfig(data_dir=data_dir, enabled=False))
        client = client_for(disabled)
        for action in ("train", "analyze", "predict", "feedback"):
            response = client.post("/v1/patterns/engine", json={"action": action})
            assert response.status_code == 403
            assert response.json()["code"] == "ENGINE_DISABLED"


# =============================================================================
# 2. Listing
# =============================================================================

class TestListPatterns:

    def test_lists_patterns(self, client, trained):
        response = client.get("/v1/patterns")
        assert response.status_code == 200
        body = response.json()
        assert body["total_patterns"] == 1
        assert body["patterns"][0]["name"] == STYLE_PATTERN_NAME

    def test_category_filter(self, client, trained):
        response = client.get("/v1/patterns", params={"pattern_type": "layout_strategy"})
        assert response.json()["total_patterns"] == 0

    def test_invalid_category(self, client):
        response = client.get("/v1/patterns", params={"pattern_type": "colour"})
        assert response.status_code == 400


# =============================================================================
# 3. Administration & History
# =============================================================================

class TestAdministration:

    def test_deactivate_then_activate(self, client, trained):
        response = client.post(f"/v1/patterns/{STYLE_PATTERN_NAME}/deactivate")
        assert response.status_code == 200
        assert response.json()["pattern"]["is_active"] is False
        assert client.get("/v1/patterns").json()["total_patterns"] == 0

        response = client.post(f"/v1/patterns/{STYLE_PATTERN_NAME}/activate")
        assert response.json()["pattern"]["is_active"] is True

    def test_deactivate_unknown(self, client):
        response = client.post("/v1/patterns/missing/deactivate")
        assert response.status_code == 404

    def test_feedback_history(self, client, engine, make_record):
        record = engine.action_store.add_record(make_record(action_id="act-h", verdict="unset"))
        client.post("/v1/patterns/engine", json={
            "action": "feedback",
            "data": {"action_id": record.id, "verdict": "approved"},
        })
        client.post("/v1/patterns/engine", json={
            "action": "feedback",
            "data": {"action_id": record.id, "verdict": "modified", "reason": "tweaked"},
        })

        response = client.get(f"/v1/patterns/feedback/{record.id}")
        assert response.status_code == 200
        events = response.json()["events"]
        assert [e["verdict"] for e in events] == ["approved", "modified"]
        assert events[1]["previous_verdict"] == "approved"


# =============================================================================
# 4. Health
# =============================================================================

class TestHealth:

    def test_health_reports_gate(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["engine_enabled"] is True
