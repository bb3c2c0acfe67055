"""
Skill Portal Configuration Module.

Handles all application settings, feature flags, and environment configuration.
Uses pydantic-settings for validation and type safety.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    """Feature flags for enabling/disabling modules."""

    model_config = SettingsConfigDict(env_prefix="FEATURE_")

    safe_actions: bool = True
    pending_actions: bool = True
    settings: bool = True
    settings_history: bool = True
    audit: bool = True

    def to_dict(self) -> dict[str, bool]:
        """Return feature flags as dictionary for health endpoint."""
        return {
            "safe_actions": self.safe_actions,
            "pending_actions": self.pending_actions,
            "settings": self.settings,
            "settings_history": self.settings_history,
            "audit": self.audit,
        }


class SupabaseSettings(BaseSettings):
    """Supabase configuration for authentication and persistence."""

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")

    url: str = Field(default="https://demo.supabase.co", description="Supabase project URL")
    anon_key: str = Field(default="demo-anon-key", description="Supabase anonymous key")
    service_role_key: str = Field(default="demo-service-role-key", description="Supabase service role key")
    jwt_secret: str = Field(default="demo-jwt-secret-for-development-only", description="JWT secret for token validation")
    jwt_audience: str = Field(default="authenticated", description="Expected `aud` claim of Supabase access tokens")
    timeout_seconds: int = Field(default=10, description="PostgREST request timeout")


class SafeActionSettings(BaseSettings):
    """Policy knobs for the tiered safe-action engine."""

    model_config = SettingsConfigDict(env_prefix="SAFE_ACTION_")

    reject_unknown_actions: bool = Field(
        default=True,
        description="Reject action ids missing from the catalog. When false, unknown ids get the guarded tier3 fallback.",
    )
    unknown_action_delay_minutes: int = Field(default=5, ge=1)
    audit_write_attempts: int = Field(
        default=2,
        ge=1,
        le=5,
        description="Attempts for history/audit appends (2 = one retry).",
    )
    history_limit: int = Field(default=50, ge=1, le=500)
    recent_history_limit: int = Field(default=10, ge=1, le=100)
    poll_interval_seconds: int = Field(default=30, ge=1)
    outbox_flush_interval_seconds: int = Field(
        default=30,
        ge=1,
        description="How often the API process retries its queued audit records.",
    )
    expiry_grace_minutes: int = Field(
        default=60,
        ge=1,
        description="A pending action overdue by more than this is expired instead of executed.",
    )
    enforce_freeze: bool = Field(
        default=True,
        description="While system_frozen is true, only freeze/maintenance settings may change.",
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_log_level: str = "INFO"

    # Auth (local convenience)
    auth_insecure_dev_bypass: bool = Field(
        default=False,
        description="If true (and not production), skip JWT validation and act as a local super admin. Intended for local development only.",
        validation_alias="AUTH_INSECURE_DEV_BYPASS",
    )
    dev_user_email: str = Field(
        default="dev-super-admin@localhost",
        validation_alias="AUTH_DEV_USER_EMAIL",
    )

    # Nested settings
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    supabase: SupabaseSettings = Field(default_factory=SupabaseSettings)
    safe_actions: SafeActionSettings = Field(default_factory=SafeActionSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
