"""
Tests for health check endpoints.

Tests the /health, /health/db, /health/storage and /health/sentry endpoints.
"""

import os
import sys
import unittest
from unittest.mock import AsyncMock, patch

# Set environment before imports
os.environ["DEV_MODE"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ["SUPABASE_URL"] = ""
os.environ["S3_BUCKET"] = ""
os.environ["SENTRY_DSN"] = ""

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi.testclient import TestClient

from src.assets.storage import ObjectStorage, S3ObjectStorage
from src.config import get_settings
from src.content.repository import ContentRepository


def reset():
    get_settings.cache_clear()
    ContentRepository.reset()
    ObjectStorage.reset()


class TestMainHealthEndpoint(unittest.TestCase):
    """Tests for the main /health endpoint."""

    def setUp(self):
        """Set up test client."""
        reset()
        from server import app
        self.client = TestClient(app)

    def tearDown(self):
        reset()

    def test_health_returns_200(self):
        """Health endpoint should return 200 status code."""
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)

    def test_health_returns_required_fields(self):
        """Health response should contain required fields."""
        data = self.client.get("/health").json()

        for field in ("status", "timestamp", "version", "environment", "services"):
            self.assertIn(field, data)

    def test_health_services_structure(self):
        """Health response should contain services status."""
        services = self.client.get("/health").json()["services"]
        self.assertEqual(set(services), {"database", "storage", "sentry"})

    def test_in_memory_backends_are_unconfigured_but_healthy(self):
        data = self.client.get("/health").json()

        self.assertEqual(data["status"], "healthy")
        self.assertEqual(data["services"]["database"]["status"], "unconfigured")
        self.assertEqual(data["services"]["database"]["backend"], "memory")
        self.assertEqual(data["services"]["storage"]["status"], "unconfigured")
        self.assertEqual(data["services"]["sentry"]["status"], "unconfigured")

    def test_health_status_values(self):
        """Service statuses should be valid values."""
        data = self.client.get("/health").json()

        valid_statuses = {"up", "down", "unconfigured"}
        for service, info in data["services"].items():
            self.assertIn(info["status"], valid_statuses)

    @patch("app.routes.health.get_database_status", new_callable=AsyncMock)
    def test_unreachable_database_is_degraded(self, mock_db_status):
        mock_db_status.return_value = {
            "configured": True,
            "connected": False,
            "backend": "supabase",
            "error": "timeout",
        }
        data = self.client.get("/health").json()

        self.assertEqual(data["status"], "degraded")
        self.assertEqual(data["services"]["database"]["status"], "down")


class TestDatabaseHealthEndpoint(unittest.TestCase):
    """Tests for /health/db endpoint."""

    def setUp(self):
        reset()
        from server import app
        self.client = TestClient(app)

    def tearDown(self):
        reset()

    def test_db_health_unconfigured_without_env(self):
        data = self.client.get("/health/db").json()

        self.assertIn("timestamp", data)
        self.assertFalse(data["database"]["configured"])
        self.assertTrue(data["database"]["connected"])

    @patch("app.routes.health.get_database_status", new_callable=AsyncMock)
    def test_db_health_connected(self, mock_db_status):
        """Database should report connected when available."""
        mock_db_status.return_value = {
            "configured": True,
            "connected": True,
            "backend": "supabase",
            "latency_ms": 5.2,
        }
        data = self.client.get("/health/db").json()
        self.assertTrue(data["database"]["connected"])
        self.assertEqual(data["database"]["latency_ms"], 5.2)


class TestStorageHealthEndpoint(unittest.TestCase):
    """Tests for /health/storage endpoint."""

    def setUp(self):
        reset()
        from server import app
        self.client = TestClient(app)

    def tearDown(self):
        reset()

    def test_in_memory_storage(self):
        data = self.client.get("/health/storage").json()
        self.assertFalse(data["storage"]["configured"])
        self.assertIn("gc_enabled", data["storage"])

    def test_s3_storage_is_configured(self):
        ObjectStorage.set_storage(S3ObjectStorage(bucket="assets", region="us-east-1", access_key="k", secret_key="s"))
        data = self.client.get("/health/storage").json()
        self.assertTrue(data["storage"]["configured"])


class TestSentryHealthEndpoint(unittest.TestCase):
    """Tests for /health/sentry endpoint."""

    def setUp(self):
        reset()
        from server import app
        self.client = TestClient(app)

    def test_sentry_unconfigured_without_dsn(self):
        data = self.client.get("/health/sentry").json()

        self.assertFalse(data["sentry"]["configured"])
        self.assertFalse(data["sentry"]["active"])
        self.assertIn("release", data["sentry"])
        self.assertIn("traces_sample_rate", data["sentry"])


if __name__ == "__main__":
    unittest.main()
