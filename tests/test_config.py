"""
Tests for settings loading.
"""

import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from src.config import Settings, get_settings


class TestSettingsDefaults(unittest.TestCase):
    """Defaults used when nothing is configured."""

    def setUp(self):
        self.env = patch.dict(os.environ, {
            "SUPABASE_URL": "",
            "S3_BUCKET": "",
            "SENTRY_DSN": "",
        })
        self.env.start()
        self.settings = Settings()

    def tearDown(self):
        self.env.stop()

    def test_versioning_defaults(self):
        self.assertEqual(self.settings.versioning.similarity_threshold, 0.85)
        self.assertEqual(self.settings.versioning.autosave_delay_seconds, 1.0)
        self.assertEqual(self.settings.versioning.snapshot_delay_seconds, 1.5)

    def test_gc_defaults(self):
        gc = self.settings.asset_gc
        self.assertEqual(gc.asset_gc_default_batch_size, 25)
        self.assertEqual(gc.asset_gc_max_batch_size, 100)
        self.assertEqual(gc.asset_gc_base_retry_seconds, 60)
        self.assertEqual(gc.asset_gc_max_retry_seconds, 3600)

    def test_backends_unconfigured(self):
        self.assertFalse(self.settings.is_supabase_configured)
        self.assertFalse(self.settings.is_storage_configured)
        self.assertFalse(self.settings.is_sentry_configured)

    def test_summary_has_no_secrets(self):
        summary = self.settings.get_config_summary()
        self.assertIn("similarity_threshold", summary)
        self.assertNotIn("asset_gc_secret", summary)
        self.assertNotIn("test-gc-secret", str(summary))


class TestSettingsFromEnvironment(unittest.TestCase):
    """Environment variables are parsed into typed settings."""

    def tearDown(self):
        get_settings.cache_clear()

    def test_versioning_overrides(self):
        with patch.dict(os.environ, {
            "VERSIONING_SIMILARITY_THRESHOLD": "0.9",
            "VERSIONING_AUTOSAVE_DELAY_SECONDS": "0.5",
        }):
            settings = Settings()
        self.assertEqual(settings.versioning.similarity_threshold, 0.9)
        self.assertEqual(settings.versioning.autosave_delay_seconds, 0.5)

    def test_threshold_out_of_range_is_rejected(self):
        with patch.dict(os.environ, {"VERSIONING_SIMILARITY_THRESHOLD": "1.5"}):
            with self.assertRaises(ValidationError):
                Settings()

    def test_origins_are_split(self):
        with patch.dict(os.environ, {"ALLOWED_ORIGINS": "http://a.test, http://b.test,,"}):
            settings = Settings()
        self.assertEqual(settings.security.origins_list, ["http://a.test", "http://b.test"])

    def test_production_flag(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            self.assertTrue(Settings().is_production)

    def test_storage_configured_with_bucket(self):
        with patch.dict(os.environ, {"S3_BUCKET": "folio-assets"}):
            self.assertTrue(Settings().is_storage_configured)

    def test_gc_secret_is_secret(self):
        with patch.dict(os.environ, {"ASSET_GC_SECRET": "s3cr3t"}):
            settings = Settings()
        self.assertEqual(settings.asset_gc.asset_gc_secret.get_secret_value(), "s3cr3t")
        self.assertNotIn("s3cr3t", repr(settings.asset_gc))

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        self.assertIs(get_settings(), get_settings())


if __name__ == "__main__":
    unittest.main()
