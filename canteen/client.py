import logging
from typing import Callable, Optional

import httpx

from canteen.config import Settings, settings as default_settings
from canteen.domain.models import Order
from canteen.domain.analytics import DashboardStats, compute_stats
from canteen.application.interfaces import IdentityProvider, PaymentGateway
from canteen.application.mutation_gateway import OrderMutationGateway
from canteen.application.notify_customer import CustomerNotificationListener
from canteen.application.payment_session import PaymentSession, PaymentSessionController
from canteen.application.status_poller import OrderStatusSnapshot, StatusPoller
from canteen.application.sync import (
    ANALYTICS, CATEGORIES, MENU, ORDERS, SynchronizationContract
)
from canteen.infrastructure.http_clients import (
    HTTPAnalyticsClient, HTTPCatalogClient, HTTPNotificationsClient, HTTPOrderRepository
)

logger = logging.getLogger(__name__)


class CanteenClient:
    """
    Клиентское ядро одного открытого приложения (клиент, оператор или админ).

    Все записи идут через один OrderMutationGateway, а представления читают
    данные через контракт синхронизации.
    """

    def __init__(
        self,
        settings: Settings = default_settings,
        identity: Optional[IdentityProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        catalog_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.orders = HTTPOrderRepository(settings.API_BASE_URL, settings.API_TOKEN, transport=transport)
        self.catalog = HTTPCatalogClient(
            settings.CATALOG_BASE_URL, settings.API_TOKEN, transport=catalog_transport or transport
        )
        self.analytics = HTTPAnalyticsClient(settings.API_BASE_URL, settings.API_TOKEN, transport=transport)
        self.notifications = HTTPNotificationsClient(
            settings.CATALOG_BASE_URL, settings.API_TOKEN, transport=catalog_transport or transport
        )

        self.sync = SynchronizationContract({
            ORDERS: self.orders.list_orders,
            CATEGORIES: self.catalog.get_categories,
            MENU: self.catalog.get_menu_items,
            ANALYTICS: self.analytics.get_analytics,
        })
        self.gateway = OrderMutationGateway(
            self.orders,
            identity_provider=identity,
            listeners=[self.sync, CustomerNotificationListener(self.notifications)],
            tax_rate=settings.TAX_RATE,
            default_estimated_time=settings.DEFAULT_ESTIMATED_TIME,
        )

    def new_checkout(
        self,
        payments: PaymentGateway,
        on_expired: Optional[Callable[[PaymentSession], None]] = None,
    ) -> PaymentSessionController:
        """Отдельный контроллер на каждую вкладку/попытку оформления"""
        return PaymentSessionController(
            self.gateway,
            payments,
            window_seconds=self.settings.PAYMENT_SESSION_SECONDS,
            currency=self.settings.CURRENCY,
            tax_rate=self.settings.TAX_RATE,
            test_mode=self.settings.PAYMENT_TEST_MODE,
            on_expired=on_expired,
        )

    def watch_order(
        self,
        token: str,
        on_update: Callable[[OrderStatusSnapshot], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> StatusPoller:
        return StatusPoller(
            token,
            self.orders.get_by_token,
            on_update,
            interval=self.settings.STATUS_POLL_INTERVAL,
            on_error=on_error,
        )

    async def find_order(self, token: str) -> Order:
        """Поиск для сканера штрихкодов и карточки заказа оператора"""
        return await self.sync.find_order(token)

    async def dashboard_stats(self) -> DashboardStats:
        return compute_stats(
            await self.sync.orders(),
            categories=await self.sync.view(CATEGORIES).read(),
            menu_items=await self.sync.view(MENU).read(),
        )
