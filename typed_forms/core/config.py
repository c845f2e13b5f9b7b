from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TYPED_FORMS_", case_sensitive=False)

    # Casting
    EMPTY_VALUES_TRIM: bool = True

    # Web
    APP_TITLE: str = "Typed Forms"
    ALLOWED_ORIGINS: str | None = "*"

    # Misc
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []
        raw = self.ALLOWED_ORIGINS
        if isinstance(raw, str):
            return [o.strip() for o in raw.split(",") if o.strip()]
        return list(raw)


settings = Settings()
