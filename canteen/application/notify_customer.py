import logging

from canteen.domain.models import Order
from canteen.domain.state_machine import OrderEvent
from canteen.application.interfaces import MutationListener, NotificationsService

logger = logging.getLogger(__name__)


class CustomerNotificationListener(MutationListener):
    """Уведомляет клиента, когда заказ готов к выдаче"""

    def __init__(self, notifications: NotificationsService):
        self._notifications = notifications

    async def on_order_mutated(self, order: Order, change: str) -> None:
        if change != OrderEvent.MARK_READY.value:
            return
        if order.customer_id is None:
            logger.info(f"Заказ {order.id} без клиента, уведомление не отправляется")
            return

        message = f"Ваш заказ {order.order_number} готов (READY). Заберите его на кассе."
        sent = await self._notifications.send(
            message=message,
            reference_id=order.order_number,
            idempotency_key=f"order_ready_{order.id}",
            user_id=str(order.customer_id),
        )
        if sent:
            logger.info(f"Отправлено уведомление о готовности для {order.id}")
        else:
            logger.info(f"Не отправлено уведомление о готовности для {order.id}")
