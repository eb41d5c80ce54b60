from sqlalchemy import Table, Column, String, Integer, Boolean, Text, Enum, DateTime, MetaData
from sqlalchemy.sql import func

from canteen.domain.models import OrderStatus

metadata = MetaData()


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_number", String(12), unique=True, nullable=False, index=True),
    Column("barcode", String(12), unique=True, nullable=False, index=True),
    Column("barcode_used", Boolean, nullable=False, default=False),
    Column("customer_id", Integer, nullable=True),
    Column("customer_name", String, nullable=True),
    Column("items", Text, nullable=False),  # JSON-блоб позиций
    Column("amount", Integer, nullable=False),
    Column(
        "status",
        Enum(
            OrderStatus,
            name="order_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=OrderStatus.PREPARING,
    ),
    Column("estimated_time", Integer, nullable=False, default=15),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("delivered_at", DateTime(timezone=True), nullable=True),
)
