# app/core/config.py
import os
from pydantic import BaseModel, Field

def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'certificates.db')}")

class Settings(BaseModel):
    DATABASE_URL: str = Field(default_factory=_default_database_url)
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET"))
    # chave de assinatura dos certificados; separada da chave dos tokens
    SIGNING_KEY: str = Field(default_factory=lambda: os.getenv("SIGNING_KEY", "CHANGE_ME_SIGNING_KEY"))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")))
    CERT_NUMBER_PREFIX: str = Field(default_factory=lambda: os.getenv("CERT_NUMBER_PREFIX", "CERT"))
    CERT_SEQUENCE_WIDTH: int = Field(default_factory=lambda: int(os.getenv("CERT_SEQUENCE_WIDTH", "6")))
    PUBLIC_BASE_URL: str = Field(default_factory=lambda: os.getenv("PUBLIC_BASE_URL", ""))
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

settings = Settings()
