import logging
from typing import Optional

from canteen.domain.models import Order, OrderPatch, OrderStatus, PATCHABLE_FIELDS
from canteen.domain.exceptions import ImmutableFieldError, OrderNotFoundError
from canteen.domain.state_machine import apply_transition, event_for_target
from canteen.application.interfaces import OrderEventPublisher

logger = logging.getLogger(__name__)

# Поля, которые идут только вместе со сменой статуса
STATUS_FIELDS = frozenset({"status", "delivered_at", "barcode_used"})


class UpdateOrderUseCase:
    """
    PATCH заказа на бэкенде.

    Смена статуса повторно проверяется машиной состояний: клиенты гоняются
    друг с другом без блокировок, и устаревший запрос должен получить отказ,
    а не откатить заказ назад.
    """

    def __init__(self, unit_of_work, publisher: Optional[OrderEventPublisher] = None):
        self._uow = unit_of_work
        self._publisher = publisher

    async def __call__(self, order_id: int, fields: dict) -> Order:
        logger.info(f"Обновление заказа {order_id}: {sorted(fields)}")
        forbidden = set(fields) - PATCHABLE_FIELDS - STATUS_FIELDS
        if forbidden:
            raise ImmutableFieldError(forbidden)
        if "status" not in fields and set(fields) & STATUS_FIELDS:
            raise ImmutableFieldError(set(fields) & STATUS_FIELDS)

        async with self._uow() as uow:
            order = await uow.orders.get_by_token(str(order_id))
            if not order or order.id != order_id:
                raise OrderNotFoundError(str(order_id))

            changes = OrderPatch.model_validate(
                {k: v for k, v in fields.items() if k in PATCHABLE_FIELDS}
            ).model_dump(exclude_unset=True)

            status_changed = False
            if "status" in fields:
                target = OrderStatus(fields["status"])
                updated = apply_transition(
                    order, event_for_target(target), now=fields.get("delivered_at")
                )
                if updated.status != order.status:
                    status_changed = True
                    changes["status"] = updated.status
                    if updated.delivered_at != order.delivered_at:
                        changes["delivered_at"] = updated.delivered_at
                if fields.get("barcode_used") and updated.status == OrderStatus.COMPLETED:
                    changes["barcode_used"] = True

            if not changes:
                logger.info(f"Заказ {order_id} не изменился")
                return order

            saved = await uow.orders.update(order_id, changes)
            await uow.commit()

        logger.info(f"Заказ {order_id} обновлен, статус {saved.status.value}")
        if self._publisher:
            event_type = "order.status_changed" if status_changed else "order.updated"
            await self._publisher.publish_order_event(event_type, saved)
        return saved
