import asyncio
import logging
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from canteen.domain.models import Order, OrderStatus
from canteen.domain.exceptions import BackendUnavailableError, OrderNotFoundError
from canteen.domain.state_machine import is_terminal, progress

logger = logging.getLogger(__name__)


class OrderStatusSnapshot(BaseModel):
    order: Order
    status: OrderStatus
    progress: int

    @classmethod
    def from_order(cls, order: Order) -> "OrderStatusSnapshot":
        return cls(order=order, status=order.status, progress=progress(order.status))


class StatusPoller:
    """
    Опрос статуса заказа для экрана клиента.

    Статус меняет оператор на другом устройстве, общего канала событий нет,
    поэтому экран опрашивает бэкенд с фиксированным интервалом независимо от
    инвалидаций. Останавливается при размонтировании или терминальном статусе.
    """

    def __init__(
        self,
        token: str,
        fetch_order: Callable[[str], Awaitable[Optional[Order]]],
        on_update: Callable[[OrderStatusSnapshot], None],
        interval: float = 5.0,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._token = token
        self._fetch_order = fetch_order
        self._on_update = on_update
        self._on_error = on_error
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.last_snapshot: Optional[OrderStatusSnapshot] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None

    async def poll_once(self) -> Optional[OrderStatusSnapshot]:
        order = await self._fetch_order(self._token)
        if not order:
            raise OrderNotFoundError(self._token)
        snapshot = OrderStatusSnapshot.from_order(order)
        changed = self.last_snapshot is None or self.last_snapshot.order != order
        self.last_snapshot = snapshot
        if changed:
            self._on_update(snapshot)
        return snapshot

    async def _run(self) -> None:
        while True:
            try:
                snapshot = await self.poll_once()
                if is_terminal(snapshot.status):
                    logger.info(f"Заказ {self._token} в терминальном статусе, опрос остановлен")
                    return
            except OrderNotFoundError as e:
                logger.warning(f"Опрос остановлен: {e}")
                if self._on_error:
                    self._on_error(e)
                return
            except BackendUnavailableError as e:
                logger.warning(f"Ошибка опроса заказа {self._token}: {e}")
            await asyncio.sleep(self._interval)
