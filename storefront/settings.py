from pydantic_settings import BaseSettings
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

class Settings(BaseSettings):
    APP_NAME: str = "Argyll Vehicles Storefront"
    # Client-side style gate, not an access control. Override via env.
    ADMIN_PASSCODE: str = "admin"
    # Default to a SQLite file next to the package. Point DATABASE_URL at a
    # persistent volume when running somewhere other than a laptop.
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'storefront.db'}"
    SECRET_KEY: str = "change-me"
    LOG_LEVEL: str = "INFO"

    BRAND_NAME: str = "ARGYLL VEHICLES LTD"
    BRAND_TOWN: str = "HELENSBURGH"
    WHATSAPP_NUMBER: str = "+447950604363"
    BUSINESS_ADDRESS: str = "Argyll Vehicles Ltd. Pladda Way, Helensburgh, G84 9SE"
    COMPANY_REG: str = "SC856735"
    DEFAULT_LOCATION: str = "Helensburgh"
    PLACEHOLDER_IMAGE: str = "https://images.pexels.com/photos/358070/pexels-photo-358070.jpeg"

settings = Settings()
