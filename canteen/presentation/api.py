from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from canteen.config import settings
from canteen.database import get_unit_of_work
from canteen.presentation.schemas import (
    CreateOrderRequest, OrderResponse, UpdateOrderRequest, ErrorResponse
)
from canteen.application.create_order import CreateOrderUseCase
from canteen.application.get_order import GetOrderUseCase, ListOrdersUseCase
from canteen.application.update_order import UpdateOrderUseCase
from canteen.application.get_analytics import GetAnalyticsUseCase
from canteen.domain.analytics import DashboardStats
from canteen.domain.exceptions import (
    DuplicateOrderError, EmptyOrderError, ImmutableFieldError, InvalidOrderError,
    InvalidTransitionError, OrderNotFoundError
)
from canteen.infrastructure.unit_of_work import UnitOfWork

router = APIRouter()


def get_event_publisher(request: Request):
    return getattr(request.app.state, "event_publisher", None)


# Фабрики для создания use cases
def get_list_orders_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


def get_get_order_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_create_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work), publisher=Depends(get_event_publisher)
):
    return CreateOrderUseCase(uow, publisher, tax_rate=settings.TAX_RATE)


def get_update_order_use_case(
    uow: UnitOfWork = Depends(get_unit_of_work), publisher=Depends(get_event_publisher)
):
    return UpdateOrderUseCase(uow, publisher)


def get_analytics_use_case(uow: UnitOfWork = Depends(get_unit_of_work)):
    return GetAnalyticsUseCase(uow)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)):
    """Все заказы, новые сверху"""
    orders = await use_case()
    return [OrderResponse.from_domain(order) for order in orders]


@router.get(
    "/orders/{token}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(token: str, use_case: GetOrderUseCase = Depends(get_get_order_use_case)):
    """Получить заказ по id, номеру заказа или штрихкоду"""
    try:
        order = await use_case(token)
        return OrderResponse.from_domain(order)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.user_message)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Сохранить новый заказ"""
    try:
        order = await use_case(request)
        return OrderResponse.from_domain(order)
    except DuplicateOrderError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmptyOrderError as e:
        raise HTTPException(status_code=400, detail=e.user_message)
    except InvalidOrderError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    }
)
async def update_order(
    order_id: int,
    request: UpdateOrderRequest,
    use_case: UpdateOrderUseCase = Depends(get_update_order_use_case)
):
    """Частичное обновление заказа; смена статуса только по машине состояний"""
    try:
        order = await use_case(order_id, request.to_fields())
        return OrderResponse.from_domain(order)
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.user_message)
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=409,
            detail=str(e),
            headers={"X-Order-Status": str(e.current or "")},
        )
    except ImmutableFieldError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/admin/analytics", response_model=DashboardStats)
async def analytics(use_case: GetAnalyticsUseCase = Depends(get_analytics_use_case)):
    """Сводка по заказам для админки"""
    return await use_case()
