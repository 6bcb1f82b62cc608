"""Configuration from .env file."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"

    # Which DocumentStore backs seeding and sessions: "json" or "firestore".
    DOCUMENT_STORE: str = "json"
    DATA_DIR: str = "data"

    FIRESTORE_PROJECT_ID: str = "demo-project"
    FIRESTORE_BASE_URL: str = "https://firestore.googleapis.com"
    # host:port of a local emulator, e.g. "localhost:8080". Takes precedence over the base URL.
    FIRESTORE_EMULATOR_HOST: str | None = None
    # Bearer token for the privileged server path (not needed for the emulator).
    FIRESTORE_TOKEN: str | None = None
    FIRESTORE_TIMEOUT: float = 30.0

    class Config:
        env_file = ".env"


settings = Settings()
