import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'linksaver.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    METADATA_FETCH_TIMEOUT = float(os.environ.get("METADATA_FETCH_TIMEOUT", "8"))
    METADATA_MAX_BYTES = int(os.environ.get("METADATA_MAX_BYTES", "2000000"))
    HEALTH_CHECK_TIMEOUT = float(os.environ.get("HEALTH_CHECK_TIMEOUT", "10"))
    BULK_MAX_URLS = int(os.environ.get("BULK_MAX_URLS", "20"))
    FAVICON_SERVICE_URL = os.environ.get(
        "FAVICON_SERVICE_URL",
        "https://www.google.com/s2/favicons?domain={domain}&sz=64",
    )
    DEFAULT_COLLECTION_COLOR = os.environ.get("DEFAULT_COLLECTION_COLOR", "#f97316")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "DEBUG"
