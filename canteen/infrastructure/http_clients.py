import httpx
import logging
from typing import List, Optional
import asyncio

from canteen.domain.models import NewOrder, Order, OrderStatus
from canteen.domain.exceptions import (
    BackendUnavailableError,
    DomainException,
    DuplicateOrderError,
    ImmutableFieldError,
    InvalidOrderError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from canteen.application.interfaces import (
    AnalyticsService,
    CatalogService,
    NotificationsService,
    OrderRepository,
)

logger = logging.getLogger(__name__)


class _HTTPServiceClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._transport = transport
        self._timeout = timeout

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.request(
                    method, path, headers={"X-API-Key": self._api_token}, **kwargs
                )
        except httpx.RequestError as e:
            logger.error(f"{method} {path}: ошибка подключения: {e}")
            raise BackendUnavailableError(f"Сервис {self._base_url} не доступен: {e}") from e

        if response.status_code >= 500:
            raise BackendUnavailableError(f"{method} {path}: ошибка {response.status_code}")
        return response

    @staticmethod
    def _detail(response: httpx.Response) -> str:
        try:
            return str(response.json().get("detail", response.text))
        except ValueError:
            return response.text


class HTTPOrderRepository(_HTTPServiceClient, OrderRepository):
    """Заказы через REST бэкенда: GET/POST /orders, GET/PATCH /orders/{id}"""

    async def list_orders(self) -> List[Order]:
        response = await self._request("GET", "/api/orders")
        self._raise_for_status(response)
        return [Order.model_validate(item) for item in response.json()]

    async def get_by_token(self, token: str) -> Optional[Order]:
        response = await self._request("GET", f"/api/orders/{token}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return Order.model_validate(response.json())

    async def create(self, order: NewOrder) -> Order:
        response = await self._request(
            "POST", "/api/orders", json=order.model_dump(mode="json", by_alias=True)
        )
        if response.status_code == 409:
            raise DuplicateOrderError(self._detail(response))
        if response.status_code == 400:
            raise InvalidOrderError(self._detail(response))
        self._raise_for_status(response)
        return Order.model_validate(response.json())

    async def update(self, order_id: int, fields: dict) -> Order:
        payload = self._to_payload(fields)
        response = await self._request("PATCH", f"/api/orders/{order_id}", json=payload)
        if response.status_code == 404:
            raise OrderNotFoundError(str(order_id))
        if response.status_code == 409:
            current = response.headers.get("X-Order-Status")
            raise InvalidTransitionError(current, payload.get("status"))
        if response.status_code == 400:
            raise ImmutableFieldError(fields.keys())
        if response.status_code == 422:
            raise InvalidOrderError(self._detail(response))
        self._raise_for_status(response)
        return Order.model_validate(response.json())

    @staticmethod
    def _to_payload(fields: dict) -> dict:
        names = {
            "status": "status",
            "delivered_at": "deliveredAt",
            "barcode_used": "barcodeUsed",
            "estimated_time": "estimatedTime",
            "customer_name": "customerName",
        }
        payload = {}
        for key, value in fields.items():
            if isinstance(value, OrderStatus):
                value = value.value
            elif hasattr(value, "isoformat"):
                value = value.isoformat()
            payload[names.get(key, key)] = value
        return payload

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise DomainException(
                f"Бэкенд заказов вернул {response.status_code}: {self._detail(response)}"
            )


class HTTPCatalogClient(_HTTPServiceClient, CatalogService):
    async def get_categories(self) -> List[dict]:
        return await self._get_list("/api/categories")

    async def get_menu_items(self) -> List[dict]:
        return await self._get_list("/api/menu")

    async def _get_list(self, path: str) -> List[dict]:
        response = await self._request("GET", path)
        if response.status_code != 200:
            raise BackendUnavailableError(f"Catalog service ошибка: {response.status_code}")
        return response.json()


class HTTPAnalyticsClient(_HTTPServiceClient, AnalyticsService):
    async def get_analytics(self) -> dict:
        response = await self._request("GET", "/api/admin/analytics")
        if response.status_code != 200:
            raise BackendUnavailableError(f"Analytics ошибка: {response.status_code}")
        return response.json()


class HTTPNotificationsClient(_HTTPServiceClient, NotificationsService):
    def __init__(
        self,
        base_url: str,
        api_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 5,
        retry_delay: float = 1.0,
    ):
        super().__init__(base_url, api_token, transport=transport)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def send(self, message: str, reference_id: str, idempotency_key: str, user_id: str) -> bool:
        """Отправка уведомления с повторными попытками"""
        for attempt in range(self._max_retries):
            try:
                response = await self._request(
                    "POST",
                    "/api/notifications",
                    json={
                        "message": message,
                        "reference_id": reference_id,
                        "idempotency_key": idempotency_key,
                        "user_id": user_id,
                    },
                )
                if response.status_code in (200, 201):
                    logger.info(f"Уведомление отправлено (попытка {attempt + 1})")
                    return True
                logger.warning(f"Уведомление вернуло статус {response.status_code}")

            except BackendUnavailableError as e:
                logger.warning(f"Ошибка отправки уведомления (попытка {attempt + 1}/{self._max_retries}): {e}")

            # Ждем перед следующей попыткой (кроме последней)
            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Не удалось отправить уведомление после {self._max_retries} попыток")
        return False
