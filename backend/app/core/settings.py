from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_KEY_BYTES = 32


class Settings(BaseSettings):
    PROJECT_NAME: str = "OAuth2 JWE Server"
    DATABASE_URL: str = "sqlite:///./data/oauth2.db"
    LOG_LEVEL: str = "info"

    # JWE Config
    JWE_ENCRYPTION_KEY: str
    JWE_SIGNING_KEY: str
    TOKEN_ISSUER: str = "oauth2-jwe-server"
    DEFAULT_CLIENT_ID: str = "default-client"

    # Known service clients for the client_credentials grant
    SERVICE_CLIENTS: list[str] = ["oauth2-client", "api-client"]

    # Rate limiting (token endpoint only)
    RATE_LIMIT_REQUESTS_PER_SECOND: float = 5.0
    RATE_LIMIT_BURST_CAPACITY: int = 10
    RATE_LIMIT_BUCKET_RETENTION_SECONDS: float = 86400.0

    # Resource servers also check the token store for revocation
    ENFORCE_REVOCATION_ON_RESOURCES: bool = False

    # Housekeeping
    CLEANUP_ENABLED: bool = False
    TOKEN_CLEANUP_INTERVAL_SECONDS: float = 3600.0
    BUCKET_CLEANUP_INTERVAL_SECONDS: float = 1800.0

    # Seed data
    SEED_DEMO_USERS: bool = True
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("JWE_ENCRYPTION_KEY", "JWE_SIGNING_KEY")
    @classmethod
    def check_key_length(cls, value: str, info):
        if len(value.encode("utf-8")) < MIN_KEY_BYTES:
            raise ValueError(f"{info.field_name} must be at least {MIN_KEY_BYTES} bytes long")
        return value


settings = Settings()
