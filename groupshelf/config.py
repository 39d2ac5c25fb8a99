"""Configuration from .env only."""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_host: str = "0.0.0.0"
    app_port: int = 3000
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Корень хранилища: groups/, temp/ и каталоги старого плоского хранилища
    uploads_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MB

    # Статический фронтенд (если каталог есть)
    static_dir: str = "public"

    def get_uploads_path(self, base_dir: Path | None = None) -> Path:
        p = Path(self.uploads_dir)
        if not p.is_absolute():
            base = base_dir if base_dir is not None else PROJECT_ROOT
            p = base / p
        return p

    def get_static_path(self, base_dir: Path | None = None) -> Path:
        p = Path(self.static_dir)
        if not p.is_absolute():
            base = base_dir if base_dir is not None else PROJECT_ROOT
            p = base / p
        return p


settings = Settings()
