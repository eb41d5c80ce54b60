import logging
from typing import Callable, Iterable, Optional

from pydantic.alias_generators import to_snake

from canteen.domain.models import NewOrder, Order, OrderDraft, OrderPatch, OrderStatus, PATCHABLE_FIELDS
from canteen.domain.exceptions import (
    BarcodeAlreadyUsedError,
    DuplicateOrderError,
    EmptyOrderError,
    ImmutableFieldError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from canteen.domain.identifiers import barcode_for, generate_order_number
from canteen.domain.pricing import price_items
from canteen.domain.state_machine import OrderEvent, apply_transition
from canteen.application.interfaces import IdentityProvider, MutationListener, OrderRepository

logger = logging.getLogger(__name__)


class OrderMutationGateway:
    """
    Единственный путь записи заказов: создание, смена статуса, правка полей.

    После каждой успешной мутации уведомляются слушатели (в том числе контракт
    синхронизации представлений), и только потом управление возвращается
    вызывающему.
    """

    def __init__(
        self,
        repository: OrderRepository,
        identity_provider: Optional[IdentityProvider] = None,
        listeners: Iterable[MutationListener] = (),
        tax_rate="0.05",
        default_estimated_time: int = 15,
        max_create_attempts: int = 3,
        number_factory: Callable[[], str] = generate_order_number,
    ):
        self._repository = repository
        self._identity = identity_provider
        self._listeners = list(listeners)
        self._tax_rate = tax_rate
        self._default_estimated_time = default_estimated_time
        self._max_create_attempts = max_create_attempts
        self._number_factory = number_factory

    def add_listener(self, listener: MutationListener) -> None:
        self._listeners.append(listener)

    async def create(self, draft: OrderDraft) -> Order:
        if not draft.items:
            raise EmptyOrderError("Нельзя создать заказ без позиций")

        pricing = price_items(draft.items, self._tax_rate)
        customer_id, customer_name = None, draft.customer_name
        user = self._identity.current_user() if self._identity and not draft.manual else None
        if user:
            customer_id = user.id
            customer_name = customer_name or user.display_name

        for attempt in range(1, self._max_create_attempts + 1):
            order_number = self._number_factory()
            new_order = NewOrder(
                order_number=order_number,
                barcode=barcode_for(order_number),
                customer_id=customer_id,
                customer_name=customer_name,
                items=draft.items,
                amount=pricing.total,
                status=OrderStatus.PREPARING,
                estimated_time=(
                    draft.estimated_time
                    if draft.estimated_time is not None
                    else self._default_estimated_time
                ),
            )
            try:
                order = await self._repository.create(new_order)
                break
            except DuplicateOrderError:
                logger.warning(
                    f"Номер {order_number} уже занят (попытка {attempt}/{self._max_create_attempts})"
                )
        else:
            raise DuplicateOrderError(
                f"Не удалось подобрать уникальный номер за {self._max_create_attempts} попыток"
            )

        logger.info(f"Заказ создан: {order.id} ({order.order_number}), сумма {order.amount}")
        await self._notify(order, "created")
        return order

    async def transition(self, order_ref, event: OrderEvent) -> Order:
        event = OrderEvent(event)
        order = await self._resolve(order_ref)
        updated = apply_transition(order, event)

        if updated.status == order.status:
            logger.info(f"Заказ {order.id} уже в статусе {order.status.value}, {event.value} пропущен")
            return order

        fields = {"status": updated.status}
        if updated.delivered_at != order.delivered_at:
            fields["delivered_at"] = updated.delivered_at
        saved = await self._repository.update(order.id, fields)

        logger.info(f"Заказ {order.id}: {order.status.value} -> {saved.status.value}")
        await self._notify(saved, event.value)
        return saved

    async def patch(self, order_ref, fields: dict) -> Order:
        normalized = {to_snake(key): value for key, value in fields.items()}
        forbidden = set(normalized) - PATCHABLE_FIELDS
        if forbidden:
            raise ImmutableFieldError(forbidden)

        changes = OrderPatch.model_validate(normalized).model_dump(exclude_unset=True)
        order = await self._resolve(order_ref)
        if not changes:
            return order

        saved = await self._repository.update(order.id, changes)
        logger.info(f"Заказ {order.id} обновлен: {sorted(changes)}")
        await self._notify(saved, "patched")
        return saved

    async def verify_pickup(self, barcode: str) -> Order:
        """Выдача на кассе по штрихкоду: ready -> completed, штрихкод гасится"""
        order = await self._resolve(barcode)
        if order.barcode_used:
            raise BarcodeAlreadyUsedError(f"Штрихкод {barcode} уже использован")
        if order.status != OrderStatus.READY:
            raise InvalidTransitionError(order.status.value, OrderStatus.COMPLETED.value)

        updated = apply_transition(order, OrderEvent.COMPLETE)
        saved = await self._repository.update(
            order.id,
            {
                "status": updated.status,
                "delivered_at": updated.delivered_at,
                "barcode_used": True,
            },
        )
        logger.info(f"Заказ {order.id} выдан по штрихкоду")
        await self._notify(saved, OrderEvent.COMPLETE.value)
        return saved

    async def _resolve(self, order_ref) -> Order:
        order = await self._repository.get_by_token(str(order_ref))
        if not order:
            raise OrderNotFoundError(str(order_ref))
        return order

    async def _notify(self, order: Order, change: str) -> None:
        for listener in self._listeners:
            try:
                await listener.on_order_mutated(order, change)
            except Exception as e:
                # Запись уже сохранена, ошибка слушателя не отменяет мутацию
                logger.error(f"Ошибка слушателя {type(listener).__name__}: {e}", exc_info=True)
