"""
Конфигурация сервиса сверки депозитов и выводов с блокчейном
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Настройки приложения"""

    # Общие настройки
    PROJECT_NAME: str = "Blockchain Reconciler"
    VERSION: str = "0.1.0"

    # База данных
    DATABASE_URL: str = "sqlite:///./reconciler.db"

    # Блокчейн
    DEFAULT_MIN_CONFIRMATIONS: int = 6
    ADAPTER_TIMEOUT: int = 30  # секунды

    # Debug режим
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


# Глобальный экземпляр настроек
settings = Settings()
