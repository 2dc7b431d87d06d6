from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ALLOWED_ENV_FIELD_NAMES = frozenset(
    {
        "app_name",
        "app_env",
        "app_version",
        "api_prefix",
        "allowed_origins",
        "availability_store",
        "mongodb_uri",
        "mongodb_db_name",
        "mongodb_availability_collection",
        "mongodb_connect_timeout_ms",
        "scheduling_timezone",
        "group_availability_horizon_days",
        "group_availability_max_horizon_days",
        "round_robin_slot_minutes",
        "booking_min_notice_minutes",
    },
)


class Settings(BaseSettings):
    app_name: str = "Schedulo Scheduling API"
    app_env: str = "development"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    availability_store: str = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "schedulo"
    mongodb_availability_collection: str = "user_availability"
    mongodb_connect_timeout_ms: int = 2000
    scheduling_timezone: str = "UTC"
    group_availability_horizon_days: int = 14
    group_availability_max_horizon_days: int = 365
    round_robin_slot_minutes: int = 30
    booking_min_notice_minutes: int = 15

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def _filter_allowed_env_fields(source):
            return {
                field_name: raw_value
                for field_name, raw_value in source().items()
                if field_name in ALLOWED_ENV_FIELD_NAMES
            }

        return (
            init_settings,
            lambda: _filter_allowed_env_fields(env_settings),
            lambda: _filter_allowed_env_fields(dotenv_settings),
            file_secret_settings,
        )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("availability_store", mode="before")
    @classmethod
    def normalize_availability_store(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("scheduling_timezone", mode="before")
    @classmethod
    def normalize_scheduling_timezone(cls, value: str) -> str:
        cleaned = value.strip()
        return cleaned or "UTC"

    @field_validator("mongodb_connect_timeout_ms", mode="before")
    @classmethod
    def normalize_mongodb_connect_timeout(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 2000
        return parsed_value

    @field_validator("group_availability_horizon_days", mode="before")
    @classmethod
    def normalize_group_availability_horizon(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 14
        return parsed_value

    @field_validator("group_availability_max_horizon_days", mode="before")
    @classmethod
    def normalize_group_availability_max_horizon(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 365
        return parsed_value

    @field_validator("round_robin_slot_minutes", mode="before")
    @classmethod
    def normalize_round_robin_slot_minutes(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 30
        return parsed_value

    @field_validator("booking_min_notice_minutes", mode="before")
    @classmethod
    def normalize_booking_min_notice(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value < 0:
            return 15
        return parsed_value


@lru_cache
def get_settings() -> Settings:
    return Settings()
