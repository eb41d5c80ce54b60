from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from canteen.domain.models import NewOrder, Order, UserIdentity


class OrderRepository(ABC):
    @abstractmethod
    async def list_orders(self) -> List[Order]:
        pass

    @abstractmethod
    async def get_by_token(self, token: str) -> Optional[Order]:
        """Поиск по id, номеру заказа или штрихкоду"""
        pass

    @abstractmethod
    async def create(self, order: NewOrder) -> Order:
        """Сохраняет заказ. DuplicateOrderError при конфликте идентификаторов."""
        pass

    @abstractmethod
    async def update(self, order_id: int, fields: dict) -> Order:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class CatalogService(ABC):
    @abstractmethod
    async def get_categories(self) -> List[dict]:
        pass

    @abstractmethod
    async def get_menu_items(self) -> List[dict]:
        pass


class AnalyticsService(ABC):
    @abstractmethod
    async def get_analytics(self) -> dict:
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send(self, message: str, reference_id: str, idempotency_key: str, user_id: str) -> bool:
        pass


class PaymentGateway(ABC):
    """Внешний платежный виджет. Отвечает асинхронно через колбэки или не отвечает вовсе."""

    @abstractmethod
    def open_checkout(
        self,
        amount: int,
        currency: str,
        on_success: Callable[[str], None],
        on_dismiss: Callable[[], None],
    ) -> None:
        pass


class IdentityProvider(ABC):
    @abstractmethod
    def current_user(self) -> Optional[UserIdentity]:
        pass


class MutationListener(ABC):
    @abstractmethod
    async def on_order_mutated(self, order: Order, change: str) -> None:
        """change: "created", "patched" или значение OrderEvent"""
        pass


class OrderEventPublisher(ABC):
    @abstractmethod
    async def publish_order_event(self, event_type: str, order: Order) -> bool:
        pass
