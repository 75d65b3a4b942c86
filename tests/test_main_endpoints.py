"""Unit tests for the probes in main.py and the rate limit key function."""

from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from app.__version__ import __build_date__, __commit_sha__, __version__
from app.main import app
from app.rate_limit import get_client_ip


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for /api/health endpoint."""

    def test_health_returns_ok_status(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_health_returns_json(self, client):
        resp = client.get("/api/health")
        assert "application/json" in resp.headers.get("content-type", "")


class TestVersionEndpoint:
    """Tests for /api/version endpoint."""

    def test_version_matches_package_version(self, client):
        resp = client.get("/api/version")
        assert resp.status_code == 200
        assert resp.json() == {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }


class TestMetricsEndpoint:
    def test_metrics_exposed(self, client):
        resp = client.get("/api/metrics")
        assert resp.status_code == 200
        assert "http_request" in resp.text


class TestGetClientIpFunction:
    """Tests for get_client_ip helper function."""

    def test_get_client_ip_from_forwarded_header(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = "192.168.1.1, 10.0.0.1"
        mock_request.client.host = "127.0.0.1"
        assert get_client_ip(mock_request) == "192.168.1.1"

    def test_get_client_ip_from_client_host(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = None
        mock_request.client.host = "127.0.0.1"
        assert get_client_ip(mock_request) == "127.0.0.1"

    def test_get_client_ip_strips_whitespace(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = "  192.168.1.1  , 10.0.0.1"
        mock_request.client.host = "127.0.0.1"
        assert get_client_ip(mock_request) == "192.168.1.1"
