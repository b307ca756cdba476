from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "ShiftScan"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # OpenAI (text + vision tiers)
    OPENAI_API_KEY: str = ""
    OPENAI_TEXT_MODEL: str = "gpt-4o-mini"
    OPENAI_VISION_MODEL: str = "gpt-4o"
    OPENAI_MAX_TOKENS: int = 4000
    OPENAI_TIMEOUT: float = 120.0

    # OCR
    TESSERACT_CMD: str = "tesseract"

    # Uploads
    MAX_UPLOAD_MB: int = 10

    # Tier routing
    ACCEPT_MIN_PARSER_CONFIDENCE: float = 0.5
    TEXT_TIER_MIN_LENGTH: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
