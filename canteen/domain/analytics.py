from typing import Iterable, Optional

from canteen.domain.models import CamelModel, OrderStatus


class DashboardStats(CamelModel):
    """Сводка для дашбордов. Всегда пересчитывается из синхронизированных коллекций."""
    total_categories: int = 0
    total_menu_items: int = 0
    available_items: int = 0
    total_orders: int = 0
    active_orders: int = 0
    ready_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: int = 0
    average_order_value: int = 0


def compute_stats(orders: Iterable, categories: Optional[Iterable] = None,
                  menu_items: Optional[Iterable] = None) -> DashboardStats:
    orders = list(orders)
    menu_items = list(menu_items or [])
    paid = [o for o in orders if o.status != OrderStatus.CANCELLED]
    revenue = sum(o.amount for o in paid)
    return DashboardStats(
        total_categories=len(list(categories or [])),
        total_menu_items=len(menu_items),
        available_items=len([m for m in menu_items if m.get("available", True)]),
        total_orders=len(orders),
        active_orders=len([o for o in orders if o.status == OrderStatus.PREPARING]),
        ready_orders=len([o for o in orders if o.status == OrderStatus.READY]),
        completed_orders=len([o for o in orders if o.status == OrderStatus.COMPLETED]),
        cancelled_orders=len([o for o in orders if o.status == OrderStatus.CANCELLED]),
        total_revenue=revenue,
        average_order_value=round(revenue / len(paid)) if paid else 0,
    )
