"""
Контракт синхронизации дашбордов.

Каждое представление (заказы, категории, меню, аналитика) перечитывает данные
при первом монтировании, при возврате фокуса и после инвалидации. Любая
успешная мутация заказа инвалидирует все представления сразу: позиции меню
ссылаются на категории, а аналитика считается по заказам.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from canteen.domain.models import Order
from canteen.domain.exceptions import DomainException
from canteen.domain.identifiers import resolve_order
from canteen.application.interfaces import MutationListener

logger = logging.getLogger(__name__)

ORDERS = "orders"
CATEGORIES = "categories"
MENU = "menu"
ANALYTICS = "analytics"


class SyncedView:
    def __init__(self, name: str, fetcher: Callable[[], Awaitable]):
        self.name = name
        self._fetcher = fetcher
        self.data = None
        self.mounted = False
        self.last_error: Optional[Exception] = None
        # Поколение инвалидации, которое видели последние загруженные данные
        self._generation = 0
        self._fetched_generation: Optional[int] = None
        self._tasks: set = set()

    @property
    def is_stale(self) -> bool:
        return self._fetched_generation is None or self._fetched_generation < self._generation

    async def refresh(self):
        generation = self._generation
        try:
            data = await self._fetcher()
        except DomainException as e:
            # Ошибку чтения не повторяем явно: следующий рефетч подхватит
            self.last_error = e
            logger.warning(f"Не удалось обновить представление {self.name}: {e}")
            return self.data

        if self._fetched_generation is None or generation >= self._fetched_generation:
            self.data = data
            self._fetched_generation = generation
            self.last_error = None
        return self.data

    async def read(self):
        """Данные не старше последней увиденной инвалидации"""
        if self.is_stale:
            await self.refresh()
        return self.data

    async def mount(self):
        first = not self.mounted
        self.mounted = True
        if first or self.is_stale:
            await self.refresh()
        return self.data

    def unmount(self) -> None:
        self.mounted = False
        for task in list(self._tasks):
            task.cancel()

    async def focus(self):
        if self.mounted:
            await self.refresh()
        return self.data

    def invalidate(self) -> None:
        self._generation += 1
        if self.mounted:
            self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Нет цикла событий: обновится при следующем чтении
            return
        task = loop.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class SynchronizationContract(MutationListener):
    def __init__(self, fetchers: Dict[str, Callable[[], Awaitable]]):
        self.views: Dict[str, SyncedView] = {
            name: SyncedView(name, fetcher) for name, fetcher in fetchers.items()
        }

    def view(self, name: str) -> SyncedView:
        return self.views[name]

    def invalidate_all(self) -> None:
        for view in self.views.values():
            view.invalidate()
        logger.info(f"Инвалидированы представления: {', '.join(self.views)}")

    async def on_order_mutated(self, order: Order, change: str) -> None:
        self.invalidate_all()

    async def on_focus(self) -> None:
        await asyncio.gather(*(view.focus() for view in self.views.values()))

    async def wait_idle(self) -> None:
        await asyncio.gather(*(view.wait_idle() for view in self.views.values()))

    async def orders(self) -> List[Order]:
        return list(await self.views[ORDERS].read() or [])

    async def find_order(self, token: str) -> Order:
        """Резолвер идентификаторов поверх синхронизированной коллекции заказов"""
        return resolve_order(token, await self.orders())
