# app/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"

    # Security
    allowed_origins: list[str] = ["*"]
    login_rate_limit_per_minute: int = 10  # Per client IP, sliding window

    # Identity
    # Bearer tokens are opaque user ids. This id is always treated as the
    # super admin and bypasses the employee lookup.
    super_admin_id: str = "super_admin_001"

    # Audit ledger
    audit_log_max_entries: int = 1000  # Oldest entries are dropped beyond this
    audit_log_default_limit: int = 100

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if s.is_production and s.log_level.upper() == "DEBUG":
        warnings.append("prod: log_level=DEBUG (storage access is logged per key).")

    if s.audit_log_max_entries <= 0:
        warnings.append("audit_log_max_entries <= 0: every audit entry is dropped immediately.")

    if s.login_rate_limit_per_minute <= 0:
        warnings.append("login_rate_limit_per_minute <= 0: every login attempt will be rejected.")

    # Carried over from the mobile backend: credential logs hold plaintext
    # passwords and the hash is a placeholder.
    warnings.append(
        "credential_logs store plaintext passwords and passwordHash is a placeholder "
        "('hashed_' + password); do not expose this service publicly."
    )

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    Print warnings for risky settings (all envs).

    Runs at import time, before logging is configured.
    """
    for msg in warn_on_risky_config(s):
        print(f"[WARN][config] {msg}")


settings = Settings()
validate_or_warn(settings)
