"""Tests for app-level endpoints and error rendering."""

from sqlalchemy.exc import OperationalError

from src.services.conversation_service import ConversationService
from tests.helpers import as_user


class TestHealth:
    """GET /health and /readyz."""

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert data["uptime_seconds"] >= 0

    def test_readyz_degraded_without_llm_key(self, client, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        response = client.get("/readyz")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["llm_credentials"]["missing"] == ["ANTHROPIC_API_KEY"]

    def test_readyz_ready(self, client, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert client.get("/readyz").json()["status"] == "ready"

    def test_readyz_database_down(self, client, monkeypatch):
        import src.api.main as main_mod

        monkeypatch.setattr(main_mod, "check_db_connection", lambda: False)
        response = client.get("/readyz")
        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_api_root(self, client):
        data = client.get("/api").json()
        assert data["docs"] == "/docs"


class TestErrorRendering:
    """Every failure renders {error_code, message, remediation}."""

    def test_domain_error_shape(self, client):
        body = client.get("/api/v1/history/missing", headers=as_user()).json()
        assert set(body) == {"error_code", "message", "remediation"}

    def test_request_validation_is_400(self, client):
        response = client.post("/api/v1/chat", json={"conversationId": "x"})
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "E-2001"
        assert "prompt" in body["message"]

    def test_uncaught_store_error(self, client, monkeypatch):
        def broken_list(self, owner):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(ConversationService, "list_for_owner", broken_list)
        response = client.get("/api/v1/history", headers=as_user())

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "E-4001"
        assert "locked" not in body["message"]
