import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")


class Settings(BaseSettings):
    CURRENCY: str = os.getenv("CURRENCY", "INR")
    DEFAULT_GST_RATE: float = float(os.getenv("DEFAULT_GST_RATE", "12"))
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    PAYMENT_TERMS_DAYS: int = int(os.getenv("PAYMENT_TERMS_DAYS", "30"))
    HSN_DATA_PATH: str = os.getenv("HSN_DATA_PATH", os.path.join(_DATA_DIR, "hotel_sac_codes.csv"))
    HSN_MIN_SCORE: float = float(os.getenv("HSN_MIN_SCORE", "80"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
