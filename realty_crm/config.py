from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./realty_crm.db"
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Reference numbers ----
    reference_number_scheme: str = "global"  # global|per_group
    reference_prefix: str = "F"
    category_code_max_len: int = 10

    # ---- DCSR ----
    dcsr_min_year: int = 2020

    # ---- Leads ----
    lead_default_status: str = "Active"
    lead_fallback_statuses: list[str] = ["Active", "Contacted", "Qualified", "Converted", "Closed"]
    lead_writes_per_minute: int = 20

    # ---- Reminders ----
    # half-width of the send window around the scheduled time, per reminder type
    reminder_window_1_day_minutes: int = 60
    reminder_window_same_day_minutes: int = 30
    reminder_window_1_hour_minutes: int = 5
    reminder_same_day_hour: int = 9
    reminder_previous_evening_hour: int = 20
    reminder_cleanup_days: int = 7
    reminder_sweep_minutes: int = 15
    # a claim older than this is treated as abandoned by a crashed sweeper
    reminder_claim_timeout_minutes: int = 10

    # ---- Celery ----
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    def model_post_init(self, __context) -> None:
        scheme = (self.reference_number_scheme or "global").strip().lower()
        if scheme not in ("global", "per_group"):
            raise ValueError(f"reference_number_scheme must be global|per_group, got {scheme!r}")
        object.__setattr__(self, "reference_number_scheme", scheme)

        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
