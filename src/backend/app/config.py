from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "ReceiptExtract"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # OCR
    TESSERACT_CMD: str = "tesseract"  # resolved from PATH
    OCR_LANGUAGE: str = "eng"
    MAX_UPLOAD_MB: int = 10

    # Extraction
    DEFAULT_CURRENCY: str = "USD"
    CATEGORY_RULES_PATH: Optional[str] = None  # JSON keyword table, defaults used when unset

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
