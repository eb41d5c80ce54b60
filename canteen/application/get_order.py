from typing import List

from canteen.domain.models import Order
from canteen.domain.exceptions import OrderNotFoundError


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, token: str) -> Order:
        """token: id, номер заказа или штрихкод"""
        async with self._uow() as uow:
            order = await uow.orders.get_by_token(token)
            if not order:
                raise OrderNotFoundError(token)
            return order


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.list_orders()
