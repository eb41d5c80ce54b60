from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CamelModel(BaseModel):
    """База для моделей, которые ходят по REST в camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddOn(CamelModel):
    name: str
    price: int = Field(ge=0)


class MenuLineItem(CamelModel):
    """Позиция из меню"""
    kind: Literal["menu"] = "menu"
    item_id: int
    name: str
    unit_price: int = Field(ge=0)
    quantity: int = Field(ge=1)
    selected_add_ons: List[AddOn] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return (self.unit_price + sum(a.price for a in self.selected_add_ons)) * self.quantity


class ManualLineItem(CamelModel):
    """Позиция, введенная вручную на кассе"""
    kind: Literal["manual"] = "manual"
    name: str
    unit_price: int = Field(ge=0)
    quantity: int = Field(ge=1)

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity


LineItem = Annotated[Union[MenuLineItem, ManualLineItem], Field(discriminator="kind")]

_line_items_adapter = TypeAdapter(List[LineItem])


def _tag_legacy_item(value):
    # Старые записи хранились без kind
    if isinstance(value, dict) and "kind" not in value:
        has_item_id = value.get("itemId") is not None or value.get("item_id") is not None
        value = {**value, "kind": "menu" if has_item_id else "manual"}
    return value


def _tag_legacy_items(value):
    if isinstance(value, list):
        return [_tag_legacy_item(v) for v in value]
    return value


LineItems = Annotated[List[LineItem], BeforeValidator(_tag_legacy_items)]


def parse_line_items(raw) -> List[Union[MenuLineItem, ManualLineItem]]:
    """Разбор списка позиций (в т.ч. старого формата без kind). Бросает ValidationError."""
    return _line_items_adapter.validate_python(_tag_legacy_items(raw))


def dump_line_items(items) -> str:
    """Сериализация позиций в JSON-блоб для хранения"""
    return _line_items_adapter.dump_json(list(items), by_alias=True).decode()


def load_line_items(blob: str):
    return parse_line_items(TypeAdapter(list).validate_json(blob))


class OrderDraft(CamelModel):
    """Черновик заказа до подтверждения оплаты"""
    items: LineItems
    estimated_time: Optional[int] = Field(default=None, ge=0)
    customer_name: Optional[str] = None
    manual: bool = False


class NewOrder(CamelModel):
    """Запись заказа, готовая к сохранению (без id)"""
    order_number: str
    barcode: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    items: LineItems = Field(min_length=1)
    amount: int = Field(ge=0)
    status: OrderStatus = OrderStatus.PREPARING
    estimated_time: int = Field(default=15, ge=0)


class Order(NewOrder):
    """Заказ столовой"""
    id: int
    barcode_used: bool = False
    created_at: datetime
    delivered_at: Optional[datetime] = None

    def identifiers(self) -> tuple:
        return (str(self.id), self.order_number, self.barcode)


class UserIdentity(CamelModel):
    """Текущий пользователь от провайдера идентификации"""
    id: int
    display_name: str
    role: str = "student"


class OrderPatch(CamelModel):
    """Поля, которые оператор может менять напрямую (не статус)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    # None по умолчанию только для exclude_unset: явный null отклоняется, колонка NOT NULL
    estimated_time: int = Field(default=None, ge=0)
    customer_name: Optional[str] = None


PATCHABLE_FIELDS = frozenset(OrderPatch.model_fields)
