"""
Pytest configuration shared by all Folio API tests.

- Environment setup so that every test runs against in-memory storage
- Reset of the settings cache and service singletons between tests
"""

import os
import sys

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["DEV_MODE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SUPABASE_URL"] = ""
os.environ["S3_BUCKET"] = ""
os.environ["S3_CDN_URL"] = "https://cdn.example.test"
os.environ["SENTRY_DSN"] = ""
os.environ["ALLOWED_ORIGINS"] = "http://localhost:3000"
os.environ["ASSET_GC_SECRET"] = "test-gc-secret"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


def _reset_singletons():
    from src.assets.storage import ObjectStorage
    from src.config import get_settings
    from src.content.repository import ContentRepository
    from src.content.service import ContentServiceFactory

    get_settings.cache_clear()
    ContentRepository.reset()
    ContentServiceFactory.reset()
    ObjectStorage.reset()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test starts with fresh settings, repository, storage and service."""
    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def client():
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient
    from server import app

    return TestClient(app)
