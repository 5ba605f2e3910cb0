"""Unit tests for the HTTP bridge."""

import asyncio
import os
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from photos_mcp.bridge import create_app, extract_text, parse_result, tool_server_client

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class FakeToolClient:
    """Records tool calls and answers canned payloads."""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.started = False
        self.closed = False
        self.error = None

    async def start(self):
        self.started = True

    async def close(self):
        self.closed = True

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        return self.responses.get(name, {})


@pytest.fixture
def tool_client():
    return FakeToolClient()


@pytest.fixture
def client(tool_client):
    with TestClient(create_app(tool_client)) as test_client:
        yield test_client


def test_lifespan_starts_and_closes(tool_client):
    """Test the tool client follows the app lifespan."""
    with TestClient(create_app(tool_client)):
        assert tool_client.started is True
    assert tool_client.closed is True


def test_extract_text():
    """Test the first text block is returned."""
    result = SimpleNamespace(content=[
        SimpleNamespace(type="image", data="..."),
        SimpleNamespace(type="text", text='{"ok": true}'),
    ])

    assert extract_text(result) == '{"ok": true}'
    assert extract_text(SimpleNamespace(content=None)) == ""


def test_parse_result_invalid_json():
    """Test non-JSON text becomes an error payload."""
    assert parse_result("Error: boom") == {
        "error": "Invalid response format",
        "details": "Error: boom",
        "success": False,
    }


def test_call_tool(client, tool_client):
    """Test tool calls are forwarded and wrapped."""
    tool_client.responses["search_photos"] = {"photos": [], "count": 0}

    response = client.post(
        "/call-tool", json={"toolName": "search_photos", "arguments": {"query": "food"}}
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"photos": [], "count": 0}}
    assert tool_client.calls == [("search_photos", {"query": "food"})]


def test_call_tool_requires_name(client, tool_client):
    """Test a missing tool name is a bad request."""
    response = client.post("/call-tool", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "Tool name is required"
    assert tool_client.calls == []


def test_call_tool_error_payload(client, tool_client):
    """Test error payloads are answered with 500."""
    tool_client.responses["get_albums"] = {"success": False, "error": "Not authenticated"}

    response = client.post("/call-tool", json={"toolName": "get_albums"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Not authenticated",
        "details": "Not authenticated",
    }


def test_call_tool_exception(client, tool_client):
    """Test transport failures are answered with 500."""
    tool_client.error = RuntimeError("server exited")

    response = client.post("/call-tool", json={"toolName": "get_albums"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to call tool"
    assert response.json()["details"] == "server exited"


def test_auth_status(client, tool_client):
    """Test the auth status is passed through."""
    tool_client.responses["get_auth_status"] = {
        "isAuthenticated": True,
        "userEmail": "user@example.com",
    }

    response = client.get("/auth-status")

    assert response.status_code == 200
    assert response.json()["userEmail"] == "user@example.com"


def test_auth_status_error_is_unauthenticated(client, tool_client):
    """Test an error payload still answers an authentication flag."""
    tool_client.responses["get_auth_status"] = {"success": False, "error": "boom"}

    response = client.get("/auth-status")

    assert response.status_code == 200
    assert response.json() == {"isAuthenticated": False, "error": "boom"}


def test_auth_url(client, tool_client):
    """Test the auth URL endpoint."""
    tool_client.responses["get_auth_url"] = {"authUrl": "https://auth", "message": "Visit"}

    response = client.get("/auth-url")

    assert response.json()["authUrl"] == "https://auth"


def test_exchange_code(client, tool_client):
    """Test the code is forwarded to the exchange tool."""
    tool_client.responses["exchange_auth_code"] = {"success": True}

    response = client.post("/exchange-code", json={"code": "auth_code"})

    assert response.status_code == 200
    assert tool_client.calls == [("exchange_auth_code", {"code": "auth_code"})]


def test_exchange_code_requires_code(client, tool_client):
    """Test a missing code is a bad request."""
    response = client.post("/exchange-code", json={})

    assert response.status_code == 400
    assert tool_client.calls == []


def test_exchange_code_failure(client, tool_client):
    """Test exchange failures are answered with 500."""
    tool_client.responses["exchange_auth_code"] = {"success": False, "error": "invalid_grant"}

    response = client.post("/exchange-code", json={"code": "used"})

    assert response.status_code == 500
    assert response.json() == {"error": "invalid_grant", "details": "invalid_grant"}


def test_revoke(client, tool_client):
    """Test the revoke endpoint."""
    tool_client.responses["revoke_auth"] = {"success": True, "message": "revoked"}

    response = client.post("/revoke")

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_health(client):
    """Test the health endpoint."""
    assert client.get("/health").json() == {"ok": True}


def test_tool_server_subprocess(credentials_file, token_file, monkeypatch):
    """Test the bridge client talks to a real tool server subprocess."""
    pythonpath = os.environ.get("PYTHONPATH")
    monkeypatch.setenv(
        "PYTHONPATH",
        os.pathsep.join([str(PROJECT_ROOT), pythonpath]) if pythonpath else str(PROJECT_ROOT),
    )
    tools = tool_server_client(str(credentials_file), str(token_file))

    assert tools.params.args[:2] == ["-m", "photos_mcp"]

    async def session():
        await tools.start()
        try:
            status = await tools.call_tool("get_auth_status", {})
            details = await tools.call_tool("get_photo_details", {})
        finally:
            await tools.close()
        return status, details

    status, details = asyncio.run(session())

    assert status == {"isAuthenticated": False}
    assert details == {"success": False, "error": "Missing required argument: photoId"}
    assert tools.session is None
