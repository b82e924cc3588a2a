from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./portal.db"
    LOG_LEVEL: str = "INFO"

    # Auth
    JWT_SECRET: str = ""  # required in production
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = 480

    # Supplier triple stamped on every manually created work order
    DEFAULT_SUPPLIER_NAME: str = "Williams Property Service"
    DEFAULT_SUPPLIER_PHONE: str = "021 123 4567"
    DEFAULT_SUPPLIER_EMAIL: str = "info@williamspropertyservices.co.nz"

    PROTECTED_CLIENT_CODE: str = "VISIONWEST"
    PROTECTED_CLIENT_NAME: str = "Visionwest"

    # First-run admin; skipped when the email is empty
    BOOTSTRAP_ADMIN_EMAIL: str = ""
    BOOTSTRAP_ADMIN_PASSWORD: str = ""

    ALERT_POLL_SECONDS: float = 60.0

    class Config:
        env_file = ".env"


settings = Settings()
