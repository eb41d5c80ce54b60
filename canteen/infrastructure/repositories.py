from typing import Optional, List
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.domain.models import NewOrder, Order, OrderStatus, dump_line_items, load_line_items
from canteen.domain.exceptions import DuplicateOrderError, OrderNotFoundError
from canteen.domain.identifiers import resolve_order
from canteen.infrastructure.db_schema import orders_tbl
from canteen.application.interfaces import OrderRepository


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def list_orders(self) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl).order_by(orders_tbl.c.created_at.desc(), orders_tbl.c.id.desc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_token(self, token: str) -> Optional[Order]:
        conditions = [orders_tbl.c.order_number == token, orders_tbl.c.barcode == token]
        if token.isascii() and token.isdigit():
            conditions.append(orders_tbl.c.id == int(token))
        result = await self._session.execute(select(orders_tbl).where(or_(*conditions)))
        candidates = [self._to_domain(row) for row in result.fetchall()]
        try:
            return resolve_order(token, candidates)
        except OrderNotFoundError:
            return None

    async def create(self, order: NewOrder) -> Order:
        identifiers = {order.order_number, order.barcode}
        # Номер и штрихкод не должны пересекаться ни с одним чужим идентификатором
        clash = await self._session.execute(
            select(orders_tbl.c.id).where(
                or_(
                    orders_tbl.c.order_number.in_(identifiers),
                    orders_tbl.c.barcode.in_(identifiers),
                )
            )
        )
        if clash.first():
            raise DuplicateOrderError(f"Идентификатор {order.order_number} уже занят")

        stmt = insert(orders_tbl).values(
            order_number=order.order_number,
            barcode=order.barcode,
            barcode_used=False,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            items=dump_line_items(order.items),
            amount=order.amount,
            status=order.status,
            estimated_time=order.estimated_time,
            created_at=datetime.now(timezone.utc),
        )
        try:
            result = await self._session.execute(stmt)
        except IntegrityError as e:
            raise DuplicateOrderError(f"Идентификатор {order.order_number} уже занят") from e
        return await self.get_by_id(result.inserted_primary_key[0])

    async def update(self, order_id: int, fields: dict) -> Order:
        values = dict(fields)
        if "status" in values:
            values["status"] = OrderStatus(values["status"])
        stmt = update(orders_tbl).where(orders_tbl.c.id == order_id).values(**values)
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise OrderNotFoundError(str(order_id))
        return await self.get_by_id(order_id)

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            order_number=row.order_number,
            barcode=row.barcode,
            barcode_used=row.barcode_used,
            customer_id=row.customer_id,
            customer_name=row.customer_name,
            items=load_line_items(row.items),
            amount=row.amount,
            status=OrderStatus(row.status),
            estimated_time=row.estimated_time,
            created_at=row.created_at,
            delivered_at=row.delivered_at,
        )
