import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")

    # API
    API_TOKEN: str = os.getenv("API_TOKEN", "")
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000")

    # Services
    CATALOG_BASE_URL: str = os.getenv("CATALOG_BASE_URL", "http://localhost:8000")

    # Kafka (пустая строка отключает публикацию событий)
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "")
    ORDER_EVENTS_TOPIC: str = os.getenv("ORDER_EVENTS_TOPIC", "canteen.order-events")

    # Orders
    PAYMENT_SESSION_SECONDS: float = float(os.getenv("PAYMENT_SESSION_SECONDS", "420"))
    STATUS_POLL_INTERVAL: float = float(os.getenv("STATUS_POLL_INTERVAL", "5"))
    TAX_RATE: str = os.getenv("TAX_RATE", "0.05")
    CURRENCY: str = os.getenv("CURRENCY", "INR")
    DEFAULT_ESTIMATED_TIME: int = int(os.getenv("DEFAULT_ESTIMATED_TIME", "15"))
    PAYMENT_TEST_MODE: bool = _as_bool(os.getenv("PAYMENT_TEST_MODE", "false"))

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        if not self.POSTGRES_CONNECTION_STRING:
            return "sqlite+aiosqlite:///./canteen.db"
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        if not self.POSTGRES_CONNECTION_STRING:
            return "sqlite:///./canteen.db"
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql://")


settings = Settings()
