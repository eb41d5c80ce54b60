import logging
from typing import Optional

from canteen.domain.models import NewOrder, Order, OrderStatus
from canteen.domain.exceptions import EmptyOrderError, InvalidOrderError
from canteen.domain.identifiers import barcode_for, is_valid_order_number
from canteen.domain.pricing import price_items
from canteen.application.interfaces import OrderEventPublisher


logger = logging.getLogger(__name__)


class CreateOrderUseCase:
    """
    Сохранение заказа на бэкенде. Идентификаторы присваивает шлюз клиента,
    но сервер перепроверяет их формат, статус и сумму: клиенту не доверяем.
    """

    def __init__(
        self,
        unit_of_work,
        publisher: Optional[OrderEventPublisher] = None,
        tax_rate="0.05",
    ):
        self._uow = unit_of_work
        self._publisher = publisher
        self._tax_rate = tax_rate

    async def __call__(self, new_order: NewOrder) -> Order:
        logger.info(f"Сохранение заказа {new_order.order_number} для клиента {new_order.customer_id}")
        if not new_order.items:
            raise EmptyOrderError("Заказ без позиций")
        self._validate(new_order)

        async with self._uow() as uow:
            order = await uow.orders.create(new_order)
            await uow.commit()
        logger.info(f"Заказ сохранен: {order.id}")

        if self._publisher:
            await self._publisher.publish_order_event("order.created", order)
        return order

    def _validate(self, new_order: NewOrder) -> None:
        # Номер должен начинаться с буквы, иначе он может совпасть с чужим id
        if not is_valid_order_number(new_order.order_number):
            raise InvalidOrderError(f"Некорректный номер заказа: {new_order.order_number!r}")
        if new_order.barcode != barcode_for(new_order.order_number):
            raise InvalidOrderError(
                f"Штрихкод {new_order.barcode!r} не соответствует номеру {new_order.order_number}"
            )
        # Новый заказ попадает только в preparing, остальные статусы через PATCH
        if new_order.status != OrderStatus.PREPARING:
            raise InvalidOrderError(
                f"Новый заказ не может быть в статусе {new_order.status.value}"
            )
        expected = price_items(new_order.items, self._tax_rate).total
        if new_order.amount != expected:
            logger.warning(
                f"Сумма заказа {new_order.order_number} не сходится: {new_order.amount} != {expected}"
            )
            raise InvalidOrderError(f"Сумма {new_order.amount} не равна {expected}")
