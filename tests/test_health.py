"""Health and backend discovery endpoints."""

from __future__ import annotations

from markdown_merge import __version__
from markdown_merge.services.backends import available_backends


def test_health_endpoint_returns_ok(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_backends_endpoint_lists_installed_parsers(client):
    response = client.get("/api/backends")

    assert response.status_code == 200
    assert response.json() == {"version": __version__, "backends": list(available_backends())}
