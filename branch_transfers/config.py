from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Branch Transfers"
    DATABASE_URL: str = "sqlite:///./transfers.db"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    LOG_LEVEL: str = "INFO"

    # Transfer codes: <prefix>-YYYYMMDD-NNN
    TRANSFER_CODE_PREFIX: str = "TRF"
    TRANSFER_CODE_MAX_RETRIES: int = 3

    # When false, any transition is accepted from any status (legacy behaviour)
    TRANSFER_STRICT_TRANSITIONS: bool = True

    # Created on startup when the users table is empty
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    model_config = {"env_file": ".env"}


settings = Settings()
