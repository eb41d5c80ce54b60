from canteen.domain.analytics import DashboardStats, compute_stats


class GetAnalyticsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self) -> DashboardStats:
        async with self._uow() as uow:
            orders = await uow.orders.list_orders()
        return compute_stats(orders)
