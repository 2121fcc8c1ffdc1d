from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "pdf-notes"
    app_env: str = "development"

    database_url: str = "sqlite:///./notes.db"

    LOG_LEVEL: str = "INFO"

    # Sessions
    SESSION_SECRET: str = "change-me"
    SESSION_COOKIE: str = "notes_session"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7
    # secure + SameSite=None for cross-origin deployments, otherwise lax
    COOKIE_CROSS_SITE: bool = False

    # OTP
    OTP_EXPIRE_MINUTES: int = 10
    OTP_RESEND_LIMIT: int = 5

    # SMTP
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASS: str | None = None
    SMTP_USE_TLS: bool = True
    MAIL_FROM: str = "no-reply@example.com"
    MAIL_FROM_NAME: str = "PDF Notes"

    # Cloudinary
    CLOUDINARY_CLOUD_NAME: str | None = None
    CLOUDINARY_API_KEY: str | None = None
    CLOUDINARY_API_SECRET: str | None = None
    CLOUDINARY_FOLDER: str = "pdf_uploads"

    # Thumbnails / downloads
    THUMBNAIL_WIDTH: int = 600
    THUMBNAILS_DIR: str = "public/uploads/thumbnails"
    LOCAL_THUMBNAILS: bool = True
    DOWNLOAD_MODE: str = "proxy"  # "proxy" | "redirect"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    MAX_UPLOAD_BYTES: int = 25 * 1024 * 1024
    # hosts besides res.cloudinary.com/<cloud> the server may download from
    MEDIA_FETCH_HOSTS: list[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.CLOUDINARY_CLOUD_NAME
            and self.CLOUDINARY_API_KEY
            and self.CLOUDINARY_API_SECRET
        )

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST)


settings = Settings()
