"""
Сессия оплаты: ограниченное по времени окно вокруг одной попытки оплаты.

С дедлайном соревнуются три события: успешная оплата, закрытие платежного
окна пользователем и истечение таймера. Исход записывается один раз; первый
обработанный циклом событий исход побеждает, остальные игнорируются.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from canteen.domain.models import Order, OrderDraft
from canteen.domain.exceptions import (
    CriticalReconciliationError,
    EmptyOrderError,
    PaymentSessionExpiredError,
    PaymentSessionStateError,
)
from canteen.domain.pricing import PriceBreakdown, price_items
from canteen.application.interfaces import PaymentGateway
from canteen.application.mutation_gateway import OrderMutationGateway

logger = logging.getLogger(__name__)


class PaymentOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentSession:
    def __init__(self, draft: OrderDraft, pricing: PriceBreakdown, window_seconds: float):
        self.id = str(uuid.uuid4())
        self.draft = draft
        self.pricing = pricing
        self.window_seconds = window_seconds
        self.started_at = datetime.now(timezone.utc)
        self.deadline = self.started_at + timedelta(seconds=window_seconds)
        self.outcome = PaymentOutcome.PENDING
        self.transaction_ref: Optional[str] = None
        self.order: Optional[Order] = None
        self.error: Optional[Exception] = None
        self._loop = asyncio.get_running_loop()
        self._deadline_at = self._loop.time() + window_seconds
        self._timer: Optional[asyncio.TimerHandle] = None
        self._commit_task: Optional[asyncio.Task] = None
        self._finished = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.outcome == PaymentOutcome.PENDING

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    @property
    def commit_task(self) -> Optional[asyncio.Task]:
        return self._commit_task

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def remaining_seconds(self) -> float:
        if not self.is_open:
            return 0.0
        return max(0.0, self._deadline_at - self._loop.time())

    def _claim(self, outcome: PaymentOutcome) -> bool:
        """Записывает исход, только если сессия еще открыта"""
        if self.outcome != PaymentOutcome.PENDING:
            return False
        self.outcome = outcome
        self._teardown_timer()
        return True

    def _teardown_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _finish(self, order: Optional[Order] = None, error: Optional[Exception] = None) -> None:
        self.order = order
        self.error = error
        self._finished.set()

    async def wait(self) -> Optional[Order]:
        """
        Ждет завершения сессии.

        Возвращает заказ при успехе и None при отмене пользователем. При
        истечении бросает PaymentSessionExpiredError, при сбое создания заказа
        после оплаты бросает CriticalReconciliationError.
        """
        await self._finished.wait()
        if self.error:
            raise self.error
        return self.order


class PaymentSessionController:
    """
    Контроллер оформления заказа. Один экземпляр на один активный checkout:
    состояние сессии принадлежит ему, а не глобальному хранилищу.
    """

    def __init__(
        self,
        gateway: OrderMutationGateway,
        payments: PaymentGateway,
        window_seconds: float = 420,
        currency: str = "INR",
        tax_rate="0.05",
        test_mode: bool = False,
        on_expired: Optional[Callable[[PaymentSession], None]] = None,
    ):
        self._gateway = gateway
        self._payments = payments
        self._window_seconds = window_seconds
        self._currency = currency
        self._tax_rate = tax_rate
        self._test_mode = test_mode
        self._on_expired = on_expired
        self.session: Optional[PaymentSession] = None

    def start(self, draft: OrderDraft) -> PaymentSession:
        """Нажатие «Оформить заказ»: запускает таймер и открывает платежное окно"""
        if self.session and (self.session.is_open or not self.session.finished):
            raise PaymentSessionStateError(f"Сессия оплаты {self.session.id} еще не завершена")
        if not draft.items:
            raise EmptyOrderError("Нельзя оплатить пустой заказ")

        pricing = price_items(draft.items, self._tax_rate)
        session = PaymentSession(draft, pricing, self._window_seconds)
        session._timer = session._loop.call_later(self._window_seconds, self._on_deadline, session)
        self.session = session
        logger.info(
            f"Сессия оплаты {session.id} открыта: {pricing.total} {self._currency}, "
            f"дедлайн {session.deadline.isoformat()}"
        )

        try:
            self._payments.open_checkout(
                amount=pricing.total,
                currency=self._currency,
                on_success=lambda ref: self._on_success(session, ref),
                on_dismiss=lambda: self._on_dismiss(session),
            )
        except Exception as e:
            logger.error(f"Не удалось открыть платежное окно: {e}")
            if session._claim(PaymentOutcome.CANCELLED):
                session._finish()
            raise
        return session

    def retry(self) -> PaymentSession:
        """Повтор после истечения или отмены: корзина берется из прошлой сессии"""
        if not self.session:
            raise PaymentSessionStateError("Нет сессии оплаты для повтора")
        if self.session.outcome not in (PaymentOutcome.EXPIRED, PaymentOutcome.CANCELLED):
            raise PaymentSessionStateError(
                f"Повтор невозможен для сессии в статусе {self.session.outcome.value}"
            )
        return self.start(self.session.draft)

    async def place_test_order(self, draft: OrderDraft) -> Order:
        """Тестовый режим: заказ создается без оплаты, но через тот же шлюз"""
        if not self._test_mode:
            raise PaymentSessionStateError("Тестовый режим оплаты выключен")
        logger.warning("Заказ создается в тестовом режиме без оплаты")
        return await self._gateway.create(draft)

    def _on_success(self, session: PaymentSession, transaction_ref: str) -> None:
        if not session._claim(PaymentOutcome.SUCCEEDED):
            logger.warning(
                f"Оплата {transaction_ref} пришла в закрытую сессию {session.id} "
                f"({session.outcome.value}), игнорируем"
            )
            return
        session.transaction_ref = transaction_ref
        logger.info(f"Сессия {session.id}: оплата прошла ({transaction_ref})")
        # Цикл событий держит задачи только по слабой ссылке
        session._commit_task = session._loop.create_task(self._commit(session))

    async def _commit(self, session: PaymentSession) -> None:
        try:
            order = await self._gateway.create(session.draft)
        except Exception as e:
            # Деньги списаны, заказа нет: только ручная сверка, без автоповтора
            error = CriticalReconciliationError(session.transaction_ref, session.draft, e)
            logger.critical(str(error), exc_info=True)
            session._finish(error=error)
            return
        session._finish(order=order)

    def _on_dismiss(self, session: PaymentSession) -> None:
        if not session._claim(PaymentOutcome.CANCELLED):
            logger.info(f"Закрытие окна для завершенной сессии {session.id} проигнорировано")
            return
        logger.info(f"Сессия {session.id}: оплата отменена пользователем")
        session._finish()

    def _on_deadline(self, session: PaymentSession) -> None:
        session._timer = None
        if not session._claim(PaymentOutcome.EXPIRED):
            return
        logger.warning(f"Сессия {session.id}: время на оплату истекло")
        session._finish(error=PaymentSessionExpiredError(
            f"Сессия оплаты {session.id} истекла через {session.window_seconds:g} с"
        ))
        if self._on_expired:
            self._on_expired(session)
