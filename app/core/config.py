from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Dict, List
from decimal import Decimal
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'pos_user'
    POSTGRES_PASSWORD: str = 'pos_pass'
    POSTGRES_DB: str = 'pos_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Sobrescribe la URL armada con POSTGRES_*

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # AFIP (alícuotas de IVA por ID AFIP, en porcentaje)
    AFIP_VAT_RATES: Dict[int, Decimal] = {
        3: Decimal("0"),
        4: Decimal("10.5"),
        5: Decimal("21"),
        6: Decimal("27"),
    }
    AFIP_DEFAULT_VAT_ID: int = 5
    AFIP_DEFAULT_VAT_RATE: Decimal = Decimal("21")
    AFIP_IIBB_TRIBUTE_ID: int = 7
    AFIP_INTERNAL_TAX_TRIBUTE_ID: int = 4

    # Caja
    CASH_PAYMENT_KEYWORDS: List[str] = ["efectivo", "cash", "contado"]
    CASH_BALANCE_TOLERANCE: Decimal = Decimal("0.01")

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

settings = Settings()
