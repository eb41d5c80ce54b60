from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from canteen.domain.models import Order, OrderStatus
from canteen.domain.exceptions import InvalidTransitionError


class OrderEvent(str, Enum):
    COMMIT = "commit"
    MARK_READY = "mark_ready"
    COMPLETE = "complete"
    CANCEL = "cancel"


# (откуда, событие) -> куда
TRANSITIONS = {
    (OrderStatus.PENDING, OrderEvent.COMMIT): OrderStatus.PREPARING,
    (OrderStatus.PREPARING, OrderEvent.MARK_READY): OrderStatus.READY,
    (OrderStatus.READY, OrderEvent.COMPLETE): OrderStatus.COMPLETED,
    (OrderStatus.PENDING, OrderEvent.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.PREPARING, OrderEvent.CANCEL): OrderStatus.CANCELLED,
}

EVENT_TARGETS = {
    OrderEvent.COMMIT: OrderStatus.PREPARING,
    OrderEvent.MARK_READY: OrderStatus.READY,
    OrderEvent.COMPLETE: OrderStatus.COMPLETED,
    OrderEvent.CANCEL: OrderStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

PROGRESS = {
    OrderStatus.PENDING: 0,
    OrderStatus.PREPARING: 33,
    OrderStatus.READY: 66,
    OrderStatus.COMPLETED: 100,
    OrderStatus.CANCELLED: 0,
}


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def progress(status: OrderStatus) -> int:
    """Процент готовности для UI. Всегда вычисляется из статуса."""
    return PROGRESS[OrderStatus(status)]


def event_for_target(target: OrderStatus) -> OrderEvent:
    """Событие, которое переводит заказ в target. Для pending такого нет."""
    target = OrderStatus(target)
    for event, status in EVENT_TARGETS.items():
        if status == target:
            return event
    raise InvalidTransitionError(None, target.value)


def next_status(current: OrderStatus, event: OrderEvent) -> OrderStatus:
    """
    Целевой статус для события.

    Повтор события для заказа, уже находящегося в целевом статусе, разрешен
    (идемпотентность при повторной отправке после сетевой ошибки).
    """
    current = OrderStatus(current)
    event = OrderEvent(event)
    target = EVENT_TARGETS[event]
    if current == target:
        return current
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(current.value, target.value) from None


def apply_transition(order: Order, event: OrderEvent, now: Optional[datetime] = None) -> Order:
    """Возвращает новый заказ с примененным переходом. Сумма не меняется никогда."""
    target = next_status(order.status, event)
    if target == order.status:
        return order

    changes = {"status": target}
    if target == OrderStatus.COMPLETED:
        changes["delivered_at"] = now or datetime.now(timezone.utc)
    return order.model_copy(update=changes)
