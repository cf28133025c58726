"""
Configuration management for the finance core
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Project Finance Core"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./finance_core.db"

    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Documents
    DEFAULT_CURRENCY: str = "SGD"
    DEFAULT_PAYMENT_TERMS_DAYS: int = 30
    DEFAULT_TAX_RATE: float = 9.0  # percent, applied to PO lines that omit one
    DEFAULT_PO_TERMS: str = (
        "PURCHASE ORDER TERMS & CONDITIONS\n\n"
        "1. Acceptance of this Purchase Order, whether expressly or by commencement "
        "of delivery, constitutes agreement to these terms.\n"
        "2. Delivery shall be made in accordance with the schedule and location stated.\n"
        "3. All goods and works must comply with the agreed specifications.\n"
        "4. Invoices must quote the Purchase Order number."
    )

    # Quotation extraction
    REVIEW_CONFIDENCE_THRESHOLD: float = 0.7  # below this an extracted quote needs review

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
