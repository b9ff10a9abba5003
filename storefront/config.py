import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseModel):
    """Everything the service needs from its environment.

    Built once at startup and handed to the persistence layer, the card
    gateway and the checkout workflow.
    """

    model_config = ConfigDict(frozen=True)

    database_url: str
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    currency: str = "usd"
    db_timeout: float = 3.0
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls, env_path: Path | None = None) -> "Settings":
        load_dotenv(dotenv_path=env_path or BASE_DIR / ".env")

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

        return cls(
            database_url=database_url,
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY", ""),
            currency=os.getenv("STRIPE_CURRENCY", "usd"),
            db_timeout=float(os.getenv("DB_TIMEOUT", "3")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_json=os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes"),
        )
