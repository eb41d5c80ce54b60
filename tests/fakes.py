"""Общие заглушки внешних сервисов для тестов"""
from datetime import datetime, timezone
from typing import List, Optional

from canteen.domain.models import NewOrder, Order, OrderStatus, UserIdentity
from canteen.domain.exceptions import BackendUnavailableError, DuplicateOrderError, OrderNotFoundError
from canteen.domain.identifiers import resolve_order
from canteen.application.interfaces import (
    IdentityProvider,
    MutationListener,
    NotificationsService,
    OrderRepository,
    PaymentGateway,
)


def burger(quantity=2, price=60):
    return {"kind": "menu", "itemId": 1, "name": "Burger", "unitPrice": price, "quantity": quantity}


def make_order(order_id=1, status=OrderStatus.PREPARING, **kwargs) -> Order:
    number = kwargs.pop("order_number", f"A{order_id:07d}0AB1")
    data = {
        "id": order_id,
        "order_number": number,
        "barcode": number,
        "items": [burger()],
        "amount": 126,
        "status": status,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    data.update(kwargs)
    return Order.model_validate(data)


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, orders: Optional[List[Order]] = None):
        self.orders = {o.id: o for o in orders or []}
        self.fail_reads = False
        self.fail_writes: Optional[Exception] = None
        self.duplicates_left = 0
        self.created: List[NewOrder] = []
        self.updates: List[tuple] = []

    async def list_orders(self) -> List[Order]:
        if self.fail_reads:
            raise BackendUnavailableError("offline")
        return sorted(self.orders.values(), key=lambda o: o.id, reverse=True)

    async def get_by_token(self, token: str) -> Optional[Order]:
        if self.fail_reads:
            raise BackendUnavailableError("offline")
        try:
            return resolve_order(token, self.orders.values())
        except OrderNotFoundError:
            return None

    async def create(self, order: NewOrder) -> Order:
        if self.fail_writes:
            raise self.fail_writes
        if self.duplicates_left:
            self.duplicates_left -= 1
            raise DuplicateOrderError(order.order_number)
        self.created.append(order)
        saved = Order(
            id=len(self.orders) + 1,
            created_at=datetime.now(timezone.utc),
            **order.model_dump(),
        )
        self.orders[saved.id] = saved
        return saved

    async def update(self, order_id: int, fields: dict) -> Order:
        if self.fail_writes:
            raise self.fail_writes
        if order_id not in self.orders:
            raise OrderNotFoundError(str(order_id))
        self.updates.append((order_id, dict(fields)))
        saved = self.orders[order_id].model_copy(update=fields)
        self.orders[order_id] = saved
        return saved


class FakePaymentGateway(PaymentGateway):
    """Платежный виджет, которым управляет тест"""

    def __init__(self, fail_open: Optional[Exception] = None):
        self.fail_open = fail_open
        self.opened = []

    def open_checkout(self, amount, currency, on_success, on_dismiss) -> None:
        if self.fail_open:
            raise self.fail_open
        self.opened.append({
            "amount": amount,
            "currency": currency,
            "on_success": on_success,
            "on_dismiss": on_dismiss,
        })

    def pay(self, transaction_ref="pay_1", index=-1):
        self.opened[index]["on_success"](transaction_ref)

    def dismiss(self, index=-1):
        self.opened[index]["on_dismiss"]()


class FakeNotifications(NotificationsService):
    def __init__(self, result=True):
        self.result = result
        self.sent = []

    async def send(self, message, reference_id, idempotency_key, user_id) -> bool:
        self.sent.append({
            "message": message,
            "reference_id": reference_id,
            "idempotency_key": idempotency_key,
            "user_id": user_id,
        })
        return self.result


class StaticIdentity(IdentityProvider):
    def __init__(self, user: Optional[UserIdentity] = None):
        self.user = user

    def current_user(self) -> Optional[UserIdentity]:
        return self.user


class RecordingListener(MutationListener):
    def __init__(self):
        self.calls = []

    async def on_order_mutated(self, order: Order, change: str) -> None:
        self.calls.append((order.id, change, order.status))


class BrokenListener(MutationListener):
    async def on_order_mutated(self, order: Order, change: str) -> None:
        raise RuntimeError("listener down")
