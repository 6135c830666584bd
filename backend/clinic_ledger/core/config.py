from pydantic_settings import BaseSettings, SettingsConfigDict

from clinic_ledger import __version__


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Clinic Ledger"
    DEBUG: bool = False
    APP_DATA_PATH: str = "/tmp"
    APP_DATABASE_DSN: str = "sqlite:////tmp/clinic_ledger.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Clinic identity
    CLINIC_ID: str = "noble-dental-primary"
    CLINIC_NAME: str = "Noble Dental Care"

    # Recognized GST buckets (percent) for tariff rules
    TAX_RATE_BUCKETS: list[int] = [0, 12, 18]

    # Invoice numbering
    INVOICE_PREFIX: str = "INV"
    INVOICE_NUMBER_START: int = 1001
    INVOICE_NUMBER_PADDING: int = 6

    # Settlement reports
    REPORTS_DIR: str = "reports"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def version(self) -> str:
        return __version__

    @property
    def reports_path(self) -> str:
        return f"{self.APP_DATA_PATH.rstrip('/')}/{self.REPORTS_DIR}"


settings = Settings()
