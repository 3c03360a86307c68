from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(
        default=f"sqlite:///{BACKEND_DIR / 'timetable.db'}",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )

    # Auth (tokens are issued elsewhere; we only verify them)
    jwt_secret_key: str = Field(
        default="change-me",
        validation_alias=AliasChoices("jwt_secret_key", "jwt_secret", "JWT_SECRET_KEY", "JWT_SECRET"),
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias=AliasChoices("jwt_algorithm", "JWT_ALGORITHM"))
    access_token_expire_minutes: int = Field(
        default=480,
        validation_alias=AliasChoices("access_token_expire_minutes", "ACCESS_TOKEN_EXPIRE_MINUTES"),
    )

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )
    # Empty means DEBUG in development and INFO in production.
    log_level: str | None = Field(default=None, validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    solver_log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("solver_log_level", "SOLVER_LOG_LEVEL"),
    )

    # Generation engine
    solver_max_steps: int = Field(
        default=200_000,
        ge=1,
        validation_alias=AliasChoices("solver_max_steps", "SOLVER_MAX_STEPS"),
    )
    solver_time_budget_seconds: float | None = Field(
        default=30.0,
        validation_alias=AliasChoices("solver_time_budget_seconds", "SOLVER_TIME_BUDGET_SECONDS"),
    )
    # When generating a single class-section, treat the latest saved timetable of
    # every other class-section as already committed (teacher/classroom occupancy).
    respect_saved_timetables: bool = Field(
        default=True,
        validation_alias=AliasChoices("respect_saved_timetables", "RESPECT_SAVED_TIMETABLES"),
    )
    default_page_limit: int = Field(
        default=20,
        ge=1,
        le=200,
        validation_alias=AliasChoices("default_page_limit", "DEFAULT_PAGE_LIMIT"),
    )

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("solver_time_budget_seconds")
    @classmethod
    def _normalize_time_budget(cls, v: float | None) -> float | None:
        # 0 or negative disables the wall-clock budget; the step budget still applies.
        if v is None or v <= 0:
            return None
        return float(v)


settings = Settings()
