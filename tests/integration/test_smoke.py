"""
Smoke tests against a running toolchat server.

Set SERVICE_URL (or SERVICE_HOST/SERVICE_PORT) to the server address; the
tests are skipped when neither is set.

Usage:
    SERVICE_URL=http://localhost:8000 pytest -m integration
"""

import json
import os
import urllib.request

import pytest


def get_service_url():
    """Get the service URL from environment variables."""
    if os.environ.get("SERVICE_URL"):
        return os.environ["SERVICE_URL"].rstrip("/")
    if os.environ.get("SERVICE_HOST"):
        port = os.environ.get("SERVICE_PORT", "8000")
        return f"http://{os.environ['SERVICE_HOST']}:{port}"
    return None


SERVICE_URL = get_service_url()

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(SERVICE_URL is None, reason="SERVICE_URL not set"),
]


def _get(path):
    with urllib.request.urlopen(f"{SERVICE_URL}{path}", timeout=10) as response:
        assert response.status == 200
        return json.loads(response.read().decode())


def test_health_endpoint():
    """Verify the health endpoint returns healthy status."""
    data = _get("/health")
    assert data["status"] == "healthy"
    assert data["model"]


def test_tool_catalog():
    """The catalog lists at least the default tools."""
    data = _get("/api/tools")
    assert data["object"] == "list"
    assert any(item["defaultEnabled"] for item in data["data"])


def test_chat_stream_terminates():
    """A plain chat request ends with exactly one terminal event and [DONE]."""
    body = json.dumps(
        {
            "messages": [
                {"id": "smoke-1", "role": "user", "parts": [{"type": "text", "text": "Say hi."}]}
            ],
            "enabledToolIds": [],
        }
    ).encode()
    request = urllib.request.Request(
        f"{SERVICE_URL}/api/chat",
        data=body,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request, timeout=120) as response:
        chunks = [c for c in response.read().decode().split("\n\n") if c]

    assert chunks[-1] == "data: [DONE]"
    terminal = [json.loads(c[6:])["type"] for c in chunks[:-1]]
    assert sum(t in ("finish", "error", "abort") for t in terminal) == 1
