from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads variables from environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # --- Application Meta ---
    APP_NAME: str = "Racecar Telemetry Visualizer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE_MAX_MB: int = 5
    LOG_FILE_BACKUPS: int = 3

    # --- Insight Service ---
    # "gemini" posts to generateContent, "groq" uses the Groq chat completions API
    INSIGHT_PROVIDER: str = "gemini"

    GEMINI_API_KEY: Optional[str] = Field(None, description="API Key for the Gemini API")
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-2.5-flash-preview-05-20"

    GROQ_API_KEY: Optional[str] = Field(None, description="API Key for Groq Cloud")
    GROQ_MODEL: str = "llama-3.1-8b-instant"

    INSIGHT_SAMPLE_ROWS: int = 15
    INSIGHT_MAX_ATTEMPTS: int = 3
    INSIGHT_TIMEOUT_SECONDS: float = 60.0
    INSIGHT_TEMPERATURE: float = 0.2

    # --- Server Configuration ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Data Ingestion Limits ---
    # Advisory only: larger files are still parsed.
    MAX_UPLOAD_SIZE_MB: int = 10

    @field_validator("GEMINI_API_KEY", "GROQ_API_KEY")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """
        Normalizes blank keys to None so the insight client can report
        a missing credential instead of sending an empty one.
        """
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        return v

    @field_validator("INSIGHT_PROVIDER")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()


def get_settings() -> Settings:
    """Reads a fresh Settings instance so environment changes take effect per call."""
    return Settings()


settings = Settings()
