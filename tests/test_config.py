"""
Tests for settings and enrollment rules.
"""

import logging

import pytest
from pydantic import ValidationError

from enrollment.config import EnrollmentRules, EnrollmentSettings, get_settings, settings
from enrollment.logging_setup import configure_logging


class TestEnrollmentRules:

    def test_defaults(self):
        rules = EnrollmentRules()

        assert rules.salary_threshold == 25000
        assert (rules.default_policy_single, rules.default_policy_married) == ("1L", "2L")
        assert rules.enable_pincode_verification

    def test_policy_amount_must_be_known(self):
        with pytest.raises(ValidationError):
            EnrollmentRules(default_policy_single="5L")

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValidationError):
            EnrollmentRules(salary_threshold=-1)


class TestEnrollmentSettings:

    def test_rules_from_environment(self, monkeypatch):
        monkeypatch.setenv("GMC_SALARY_THRESHOLD", "40000")
        monkeypatch.setenv("GMC_DEFAULT_POLICY_SINGLE", "2L")
        monkeypatch.setenv("ENABLE_PINCODE_VERIFICATION", "false")

        rules = EnrollmentSettings().enrollment_rules()

        assert rules.salary_threshold == 40000
        assert rules.default_policy_single == "2L"
        assert not rules.enable_pincode_verification

    def test_storage_defaults(self):
        settings = EnrollmentSettings()

        assert settings.avatars_bucket == "avatars"
        assert settings.documents_bucket == "documents"
        assert settings.submissions_table == "onboarding_submissions"
        assert settings.is_development


class TestLogging:

    def test_configure_logging_sets_level(self):
        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

        configure_logging("INFO")

    def test_missing_settings_fall_back_to_info(self, monkeypatch):
        configure_logging("DEBUG")
        monkeypatch.delenv("SUPABASE_URL")
        monkeypatch.setattr(settings, "_instance", None)
        get_settings.cache_clear()

        try:
            configure_logging()
        finally:
            get_settings.cache_clear()

        assert logging.getLogger().level == logging.INFO

    def test_level_from_settings(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setattr(settings, "_instance", None)
        get_settings.cache_clear()

        try:
            configure_logging()
            level = logging.getLogger().level
        finally:
            get_settings.cache_clear()
            configure_logging("INFO")

        assert level == logging.WARNING
