import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from canteen.config import settings
from canteen.database import create_tables
from canteen.presentation.api import router
from canteen.infrastructure.kafka_producer import KafkaProducerClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    # 1. Создаем таблицы
    await create_tables()
    logger.info("Таблицы созданы")

    # 2. Публикация событий заказов, если Kafka настроена
    app.state.event_publisher = None
    producer = None
    if settings.KAFKA_BOOTSTRAP_SERVERS:
        producer = KafkaProducerClient(settings.KAFKA_BOOTSTRAP_SERVERS, settings.ORDER_EVENTS_TOPIC)
        await producer.start()
        app.state.event_publisher = producer
        logger.info("Kafka producer запущен")

    yield

    logger.info("Приложение останавливается...")
    if producer:
        await producer.stop()


app = FastAPI(
    title="Canteen Order Service",
    description="Заказы столовой: жизненный цикл и синхронизация дашбордов",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Canteen Order Service работает"}


@app.get("/api/health")
async def health():
    return {"status": "ok", "kafka": bool(settings.KAFKA_BOOTSTRAP_SERVERS)}
