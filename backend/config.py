# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_storefront.db"

    # Remote storefront service consumed by the cart/checkout core
    STOREFRONT_API_URL: str = "http://127.0.0.1:8000"
    FRONTEND_URL: str = "http://localhost:5173"
    # Hosted payment page handed out by /payments/initiate
    PAYMENT_PAGE_URL: str = "http://127.0.0.1:8000/pay"
    HTTP_TIMEOUT: float = 8.0

    # Durable local key-value store (guest cart, credential, pending redirects)
    LOCAL_STORE_PATH: str = str(Path(__file__).parent.parent / "data" / "local_store.db")

    # Background stock polling
    STOCK_POLL_INTERVAL: float = 5.0
    STOCK_POLL_MAX_BACKOFF: float = 60.0
    DEFAULT_LOW_STOCK_THRESHOLD: int = 5

    # Store-wide payment switches
    PAYMENT_COD_ENABLED: bool = True
    PAYMENT_CARD_ENABLED: bool = True
    PAYMENT_UPI_ENABLED: bool = True

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
