import asyncio
import unittest
from unittest.mock import AsyncMock

from canteen.domain.models import OrderDraft, OrderStatus
from canteen.domain.exceptions import BackendUnavailableError, OrderNotFoundError
from canteen.domain.state_machine import OrderEvent
from canteen.application.mutation_gateway import OrderMutationGateway
from canteen.application.status_poller import StatusPoller
from canteen.application.sync import (
    ANALYTICS, CATEGORIES, MENU, ORDERS, SynchronizationContract, SyncedView
)
from tests.fakes import InMemoryOrderRepository, burger, make_order


class TestSyncedView(unittest.IsolatedAsyncioTestCase):
    async def test_mount_fetches_once(self):
        fetcher = AsyncMock(return_value=[1])
        view = SyncedView("menu", fetcher)

        self.assertEqual(await view.mount(), [1])
        await view.read()

        fetcher.assert_awaited_once()
        self.assertFalse(view.is_stale)

    async def test_focus_refetches_mounted_view(self):
        fetcher = AsyncMock(side_effect=[[1], [1, 2]])
        view = SyncedView("menu", fetcher)
        await view.mount()

        self.assertEqual(await view.focus(), [1, 2])

    async def test_focus_ignored_when_unmounted(self):
        fetcher = AsyncMock(return_value=[1])
        view = SyncedView("menu", fetcher)

        self.assertIsNone(await view.focus())
        fetcher.assert_not_awaited()

    async def test_read_failure_keeps_previous_data(self):
        fetcher = AsyncMock(side_effect=[["old"], BackendUnavailableError("offline")])
        view = SyncedView("orders", fetcher)
        await view.mount()
        view.invalidate()
        await view.wait_idle()

        self.assertEqual(view.data, ["old"])
        self.assertIsInstance(view.last_error, BackendUnavailableError)
        self.assertTrue(view.is_stale)

    async def test_any_domain_read_error_is_recorded(self):
        fetcher = AsyncMock(side_effect=[["old"], OrderNotFoundError("7"), OrderNotFoundError("7")])
        view = SyncedView("order", fetcher)
        await view.mount()
        view.invalidate()
        await view.wait_idle()

        self.assertEqual(await view.focus(), ["old"])
        self.assertIsInstance(view.last_error, OrderNotFoundError)

    async def test_invalidate_unmounted_view_refetches_on_next_read(self):
        fetcher = AsyncMock(side_effect=[["a"], ["b"]])
        view = SyncedView("analytics", fetcher)
        await view.read()

        view.invalidate()
        self.assertTrue(view.is_stale)
        self.assertEqual(fetcher.await_count, 1)
        self.assertEqual(await view.read(), ["b"])

    async def test_unmount_cancels_background_refresh(self):
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(10)
            return ["late"]

        view = SyncedView("orders", AsyncMock(return_value=["first"]))
        await view.mount()
        view._fetcher = slow
        view.invalidate()
        await started.wait()

        view.unmount()
        await view.wait_idle()

        self.assertEqual(view.data, ["first"])


class TestSynchronizationContract(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.repo = InMemoryOrderRepository([make_order(1)])
        self.categories = AsyncMock(return_value=[{"id": 1}])
        self.menu = AsyncMock(return_value=[{"id": 1, "available": True}])
        self.analytics = AsyncMock(return_value={"totalOrders": 1})
        self.sync = SynchronizationContract({
            ORDERS: self.repo.list_orders,
            CATEGORIES: self.categories,
            MENU: self.menu,
            ANALYTICS: self.analytics,
        })
        self.gateway = OrderMutationGateway(self.repo, listeners=[self.sync])

    async def test_create_is_visible_on_next_read(self):
        await self.sync.view(ORDERS).mount()

        order = await self.gateway.create(OrderDraft(items=[burger()]))
        orders = await self.sync.orders()

        self.assertIn(order.id, [o.id for o in orders])

    async def test_mutation_invalidates_every_view(self):
        for view in self.sync.views.values():
            await view.mount()

        await self.gateway.transition(1, OrderEvent.MARK_READY)
        await self.sync.wait_idle()

        self.assertEqual(self.categories.await_count, 2)
        self.assertEqual(self.menu.await_count, 2)
        self.assertEqual(self.analytics.await_count, 2)
        self.assertEqual((await self.sync.orders())[0].status, OrderStatus.READY)

    async def test_failed_mutation_does_not_invalidate(self):
        await self.sync.view(CATEGORIES).mount()

        with self.assertRaises(OrderNotFoundError):
            await self.gateway.transition(99, OrderEvent.CANCEL)

        self.assertFalse(self.sync.view(CATEGORIES).is_stale)

    async def test_on_focus_refreshes_mounted_views(self):
        await self.sync.view(MENU).mount()

        await self.sync.on_focus()

        self.assertEqual(self.menu.await_count, 2)
        self.categories.assert_not_awaited()

    async def test_find_order_by_barcode(self):
        order = await self.sync.find_order(self.repo.orders[1].barcode)
        self.assertEqual(order.id, 1)

        with self.assertRaises(OrderNotFoundError):
            await self.sync.find_order("UNKNOWN")


class TestStatusPoller(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.repo = InMemoryOrderRepository([make_order(1)])
        self.gateway = OrderMutationGateway(self.repo)
        self.updates = []

    def _poller(self, token="1", **kwargs):
        return StatusPoller(token, self.repo.get_by_token, self.updates.append, interval=0.01, **kwargs)

    async def test_reports_changes_and_stops_on_terminal(self):
        poller = self._poller()
        poller.start()
        await asyncio.sleep(0.03)

        await self.gateway.transition(1, OrderEvent.MARK_READY)
        await asyncio.sleep(0.03)
        await self.gateway.transition(1, OrderEvent.COMPLETE)
        await asyncio.sleep(0.05)

        self.assertFalse(poller.running)
        self.assertEqual([s.progress for s in self.updates], [33, 66, 100])
        self.assertEqual(self.updates[-1].status, OrderStatus.COMPLETED)

    async def test_stop_on_unmount(self):
        poller = self._poller()
        poller.start()
        await asyncio.sleep(0.02)

        poller.stop()
        await self.gateway.transition(1, OrderEvent.CANCEL)
        await asyncio.sleep(0.03)

        self.assertFalse(poller.running)
        self.assertEqual([s.status for s in self.updates], [OrderStatus.PREPARING])

    async def test_unknown_order_stops_with_error(self):
        errors = []
        poller = self._poller("ZZZZZZZZZZZZ", on_error=errors.append)
        poller.start()
        await asyncio.sleep(0.03)

        self.assertFalse(poller.running)
        self.assertIsInstance(errors[0], OrderNotFoundError)

    async def test_backend_errors_do_not_stop_polling(self):
        poller = self._poller()
        self.repo.fail_reads = True
        poller.start()
        await asyncio.sleep(0.03)

        self.assertTrue(poller.running)
        self.repo.fail_reads = False
        await asyncio.sleep(0.03)
        poller.stop()

        self.assertEqual(len(self.updates), 1)
