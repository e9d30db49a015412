"""
Enrollment - Configuration and settings.

EnrollmentSettings holds backend wiring (Supabase, storage buckets, pincode API).
EnrollmentRules holds the business thresholds the onboarding rules read.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PolicyAmount = Literal["1L", "2L"]


class EnrollmentRules(BaseModel):
    """
    Organization-level enrollment rules.

    GMC (group medical cover) is offered only above salary_threshold.
    The default policy amount depends on marital status.
    """

    salary_threshold: float = Field(default=25000, ge=0)
    default_policy_single: PolicyAmount = "1L"
    default_policy_married: PolicyAmount = "2L"
    enable_pincode_verification: bool = True


class EnrollmentSettings(BaseSettings):
    """
    Application settings.

    Loaded from the environment / .env. Supabase fields are required;
    everything else has a working default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase
    supabase_url: str
    supabase_anon_key: str

    # Storage / tables
    avatars_bucket: str = "avatars"
    documents_bucket: str = "documents"
    submissions_table: str = "onboarding_submissions"

    # Pincode lookup
    pincode_api_url: str = "https://api.postalpincode.in/pincode"
    pincode_timeout_seconds: float = 10.0

    # Enrollment rules
    gmc_salary_threshold: float = 25000
    gmc_default_policy_single: PolicyAmount = "1L"
    gmc_default_policy_married: PolicyAmount = "2L"
    enable_pincode_verification: bool = True

    # Application
    enrollment_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def is_development(self) -> bool:
        return self.enrollment_env == "development"

    def enrollment_rules(self) -> EnrollmentRules:
        """Build the rules model from the GMC_* / pincode settings."""
        return EnrollmentRules(
            salary_threshold=self.gmc_salary_threshold,
            default_policy_single=self.gmc_default_policy_single,
            default_policy_married=self.gmc_default_policy_married,
            enable_pincode_verification=self.enable_pincode_verification,
        )


@lru_cache
def get_settings() -> EnrollmentSettings:
    """Get cached settings instance."""
    return EnrollmentSettings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: EnrollmentSettings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
