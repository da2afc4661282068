from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    DATABASE_URL: str | None = None

    @property
    def database_url(self):
        return self.DATABASE_URL or "sqlite:///./carelink.db"

    # Security
    JWT_SECRET: str = Field(
        "your-secret-key-change-in-production",
        validation_alias=AliasChoices("JWT_SECRET", "SECRET_KEY"),
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    APP_ENV: str = "development"
    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD: str | None = None

    # App
    PROJECT_NAME: str = "CareLink"
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    # Link placed in the signup confirmation mail.
    EMAIL_REDIRECT_URL: str | None = None
    # Receives a mail every time a doctor submits an ID for review.
    ADMIN_NOTIFICATION_EMAIL: str | None = None

    # Blob storage
    UPLOAD_DIR: str = "uploads"
    VERIFICATION_BUCKET: str = "doctor-verifications"
    MAX_VERIFICATION_FILE_BYTES: int = 5 * 1024 * 1024

    # AI assistant
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    OPENROUTER_API_KEY: str | None = None
    AI_MODELS: list[str] = [
        "google/gemini-2.0-flash-exp:free",
        "google/gemini-flash-1.5",
        "meta-llama/llama-3.1-8b-instruct:free",
        "microsoft/phi-3-mini-128k-instruct:free",
        "qwen/qwen-2-7b-instruct:free",
    ]
    AI_TEMPERATURE: float = 0.7
    AI_MAX_TOKENS: int = 2000

    # Email (SMTP). Mail is skipped when these are not configured.
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM: str | None = None


settings = Settings()
