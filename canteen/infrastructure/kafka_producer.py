import json
import logging
from datetime import datetime, timezone
from typing import Optional

from aiokafka import AIOKafkaProducer

from canteen.domain.models import Order
from canteen.application.interfaces import OrderEventPublisher

logger = logging.getLogger(__name__)


class KafkaProducerClient(OrderEventPublisher):
    """
    Публикация событий заказов в Kafka.

    Ключ сообщения: id заказа, чтобы события одного заказа шли в одну партицию
    по порядку. Ошибка публикации не отменяет уже сохраненную мутацию.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str = "canteen.order-events",
        producer: Optional[AIOKafkaProducer] = None,
    ):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._producer = producer
        self._started = False

    async def start(self):
        if self._started:
            return
        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._bootstrap_servers,
                key_serializer=lambda key: str(key).encode(),
                value_serializer=lambda value: json.dumps(value).encode(),
            )
        await self._producer.start()
        self._started = True
        logger.info(f"Kafka producer запущен, топик {self._topic}")

    async def stop(self):
        if self._started:
            await self._producer.stop()
            self._started = False
            logger.info("Kafka producer остановлен")

    @staticmethod
    def build_event(event_type: str, order: Order) -> dict:
        return {
            "event_type": event_type,
            "order_id": order.id,
            "order_number": order.order_number,
            "status": order.status.value,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }

    async def publish_order_event(self, event_type: str, order: Order) -> bool:
        if not self._started:
            logger.error(f"Kafka producer не запущен, {event_type} для заказа {order.id} не отправлен")
            return False

        try:
            await self._producer.send_and_wait(
                self._topic, value=self.build_event(event_type, order), key=order.id
            )
        except Exception as e:
            logger.error(f"Не удалось опубликовать {event_type} для заказа {order.id}: {e}")
            return False

        logger.info(f"Опубликовано {event_type} для заказа {order.id}")
        return True
