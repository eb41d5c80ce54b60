import unittest
from unittest.mock import AsyncMock

from canteen.domain.models import OrderStatus
from canteen.infrastructure.kafka_producer import KafkaProducerClient
from tests.fakes import make_order


class TestKafkaProducerClient(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.producer = AsyncMock()
        self.client = KafkaProducerClient("kafka:9092", topic="orders-test", producer=self.producer)
        await self.client.start()

    async def test_publish_status_change(self):
        order = make_order(7, status=OrderStatus.READY)

        published = await self.client.publish_order_event("order.status_changed", order)

        self.assertTrue(published)
        self.producer.send_and_wait.assert_awaited_once()
        args, kwargs = self.producer.send_and_wait.call_args
        self.assertEqual(args, ("orders-test",))
        self.assertEqual(kwargs["key"], 7)
        self.assertEqual(kwargs["value"]["status"], "ready")
        self.assertEqual(kwargs["value"]["order_number"], order.order_number)

    async def test_publish_failure_is_reported(self):
        self.producer.send_and_wait.side_effect = RuntimeError("broker down")

        with self.assertLogs("canteen.infrastructure.kafka_producer", level="ERROR"):
            published = await self.client.publish_order_event("order.created", make_order())

        self.assertFalse(published)

    async def test_not_started(self):
        await self.client.stop()
        self.producer.stop.assert_awaited_once()

        self.assertFalse(await self.client.publish_order_event("order.created", make_order()))
