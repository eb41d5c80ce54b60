"""
Идентификаторы заказа: внутренний id, номер заказа и штрихкод.

Номер заказа: 12 символов [A-Z0-9]: 8 случайных + 4 из времени создания
(base36). Первый символ всегда буква, поэтому номер никогда не совпадет со
строковым представлением числового id. Штрихкод равен номеру заказа.
"""
import re
import secrets
import string
import time
from typing import Iterable, Optional

from canteen.domain.models import Order
from canteen.domain.exceptions import OrderNotFoundError

ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{11}$")


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(string.digits[rem] if rem < 10 else string.ascii_uppercase[rem - 10])
    return "".join(reversed(out))


def generate_order_number(now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    head = secrets.choice(string.ascii_uppercase)
    random_part = "".join(secrets.choice(ALPHABET) for _ in range(7))
    time_part = _to_base36(now_ms)[-4:].rjust(4, "0")
    return head + random_part + time_part


def barcode_for(order_number: str) -> str:
    return order_number


def is_valid_order_number(value: str) -> bool:
    return bool(ORDER_NUMBER_PATTERN.match(value or ""))


def resolve_order(token: str, orders: Iterable[Order]) -> Order:
    """
    Находит заказ по любому из идентификаторов.

    Порядок проверки: id, номер заказа, штрихкод. Совпадение только точное.
    """
    token = str(token)
    orders = list(orders)
    for key in (
        lambda o: str(o.id),
        lambda o: o.order_number,
        lambda o: o.barcode,
    ):
        for order in orders:
            if key(order) == token:
                return order
    raise OrderNotFoundError(token)
