from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    database_url: str = Field(default="sqlite+pysqlite:///./dev.db", validation_alias="DATABASE_URL")
    db_auto_create: bool = Field(default=True, validation_alias="DB_AUTO_CREATE")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        validation_alias="CORS_ORIGINS",
    )

    auth_jwt_secret: str | None = Field(default=None, validation_alias="AUTH_JWT_SECRET")
    auth_jwt_algorithm: str = Field(default="HS256", validation_alias="AUTH_JWT_ALGORITHM")
    auth_jwt_audience: str | None = Field(default=None, validation_alias="AUTH_JWT_AUDIENCE")
    auth_jwt_issuer: str | None = Field(default=None, validation_alias="AUTH_JWT_ISSUER")

    # S3-compatible object storage (Cloudflare R2, MinIO, AWS S3)
    storage_endpoint: str | None = Field(default=None, validation_alias="STORAGE_ENDPOINT")
    storage_region: str = Field(default="auto", validation_alias="STORAGE_REGION")
    storage_bucket: str | None = Field(default=None, validation_alias="STORAGE_BUCKET")
    storage_access_key_id: str | None = Field(default=None, validation_alias="STORAGE_ACCESS_KEY_ID")
    storage_secret_access_key: str | None = Field(default=None, validation_alias="STORAGE_SECRET_ACCESS_KEY")
    storage_public_domain: str | None = Field(default=None, validation_alias="STORAGE_PUBLIC_DOMAIN")
    storage_use_in_memory: bool = Field(default=False, validation_alias="STORAGE_USE_IN_MEMORY")

    presigned_url_ttl_seconds: int = Field(default=3600, validation_alias="PRESIGNED_URL_TTL_SECONDS")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")
    orphan_min_age_seconds: int = Field(default=0, validation_alias="ORPHAN_MIN_AGE_SECONDS")

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.storage_bucket
            and self.storage_endpoint
            and self.storage_access_key_id
            and self.storage_secret_access_key
        )


settings = Settings()
