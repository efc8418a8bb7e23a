from __future__ import annotations

import os
from typing import Literal

from pydantic import AliasChoices, Field

from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_files() -> list[str]:
    env = os.getenv("FM_ENVIRONMENT", "").strip().lower()
    files = [".env"]
    if env and env != "development":
        files.append(f".env.{env}")
    else:
        files.append(".env.local")
    return files


class Settings(BaseSettings):
    app_name: str = "FeriaMatch"
    environment: str = "development"

    database_url: str

    auth_mode: Literal["dev", "google"] = "dev"
    allow_demo_mode: bool = True
    admin_email: str = Field(
        default="",
        validation_alias=AliasChoices("FM_ADMIN_EMAIL", "ADMIN_EMAIL"),
    )

    google_client_id: str = ""
    google_oauth_secrets_path: str = "secrets/oauth-client.json"
    google_clock_skew_seconds: int = 180
    google_application_credentials: str = Field(
        default="secrets/google-service-account.json",
        validation_alias=AliasChoices(
            "FM_GOOGLE_APPLICATION_CREDENTIALS",
            "GOOGLE_APPLICATION_CREDENTIALS",
        ),
    )

    enable_gmail: bool = False
    gmail_sender_email: str = ""
    gmail_sender_name: str = "FeriaMatch"

    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Active (pending + confirmed) bookings accepted per company allocation.
    booking_capacity: int = 2
    allowed_slot_durations: list[int] = [15, 20, 30, 60]

    model_config = SettingsConfigDict(env_prefix="FM_", env_file=_env_files(), extra="ignore")


settings = Settings()
