"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_DAYS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    CORS_ORIGINS: list
    DEFAULT_PAGE_SIZE: int
    MAX_PAGE_SIZE: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
        self.DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
        self.MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.JWT_EXPIRE_DAYS < 1:
            raise RuntimeError("JWT_EXPIRE_DAYS must be >= 1")
        if not 1 <= self.DEFAULT_PAGE_SIZE <= self.MAX_PAGE_SIZE:
            raise RuntimeError("DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE")


settings = Settings()
