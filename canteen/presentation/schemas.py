from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, computed_field
from pydantic.alias_generators import to_camel, to_snake

from canteen.domain.models import CamelModel, NewOrder, Order, OrderStatus
from canteen.domain.state_machine import progress


class CreateOrderRequest(NewOrder):
    pass


class OrderResponse(Order):
    @computed_field
    @property
    def progress(self) -> int:
        return progress(self.status)

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls.model_validate(order.model_dump())


class UpdateOrderRequest(CamelModel):
    """PATCH: status проверяется машиной состояний, лишние поля отклоняются в use case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    status: Optional[OrderStatus] = None
    estimated_time: Optional[int] = None
    customer_name: Optional[str] = None
    delivered_at: Optional[datetime] = None
    barcode_used: Optional[bool] = None

    def to_fields(self) -> dict:
        fields = {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name in type(self).model_fields
        }
        for key, value in (self.model_extra or {}).items():
            fields[to_snake(key)] = value
        return fields


class ErrorResponse(CamelModel):
    detail: str
