# backend/utils/local_store.py
import logging
import os
from typing import Any, Optional

from sqlalchemy import Column, DateTime, JSON, String, create_engine, func
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)

# Well-known keys
GUEST_CART_KEY = "guestCart"
TOKEN_KEY = "token"
USER_KEY = "user"
PENDING_CHECKOUT_KEY = "pendingCheckout"
PAYMENT_SETTINGS_KEY = "paymentMethodsConfig"

# Device-side tables live in their own metadata, apart from the service database
LocalBase = declarative_base()


class LocalEntry(LocalBase):
    __tablename__ = "kv"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class LocalStore:
    """Durable key-value store on the local device (JSON values in SQLite).

    Reads and writes are synchronous and commit immediately; each call uses
    its own short session so the store can be shared between components of
    one session.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.LOCAL_STORE_PATH
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.path}", connect_args={"check_same_thread": False})
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        LocalBase.metadata.create_all(bind=self.engine)

    def get(self, key: str, default: Any = None) -> Any:
        db = self.SessionLocal()
        try:
            entry = db.get(LocalEntry, key)
            return default if entry is None else entry.value
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        db = self.SessionLocal()
        try:
            db.merge(LocalEntry(key=key, value=value))
            db.commit()
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self.SessionLocal()
        try:
            deleted = db.query(LocalEntry).filter(LocalEntry.key == key).delete()
            db.commit()
        finally:
            db.close()
        if deleted:
            logger.debug("Removed local value %s", key)

    def __contains__(self, key: str) -> bool:
        db = self.SessionLocal()
        try:
            return db.get(LocalEntry, key) is not None
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()
