import json
import uuid
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse

from . import store
from .errors import OrderNotFound, PersistenceError
from .models import Order, PaymentStatus


def make_order(order_id, **extra):
    defaults = dict(
        order_id=order_id,
        total_amount=Decimal("49.99"),
        billing_address="1 Main St, Phoenix, AZ, 85001",
        email="buyer@example.com",
        phone_number="6025550100",
    )
    defaults.update(extra)
    return Order.objects.create(**defaults)


class OrderStoreTests(TestCase):
    def test_insert_defaults_to_pending(self):
        order = store.insert(Order(
            order_id="ORD-1", total_amount=Decimal("10.00"), billing_address="x",
            email="a@example.com", phone_number="1",
        ))
        order.refresh_from_db()
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertFalse(order.is_paid)

    def test_insert_never_overwrites(self):
        make_order("ORD-1")
        with self.assertRaises(PersistenceError):
            store.insert(Order(
                order_id="ORD-1", total_amount=Decimal("1.00"), billing_address="x",
                email="a@example.com", phone_number="1",
            ))
        self.assertEqual(Order.objects.get(order_id="ORD-1").total_amount, Decimal("49.99"))

    def test_update_by_order_id(self):
        make_order("ORD-1")
        self.assertEqual(store.update_by_order_id("ORD-1", payment_status="paid", payment_processor_id="T1"), 1)
        order = store.get_by_order_id("ORD-1")
        self.assertTrue(order.is_paid)
        self.assertEqual(order.payment_processor_id, "T1")

    def test_update_unknown_order_does_not_insert(self):
        with self.assertRaises(OrderNotFound) as cm:
            store.update_by_order_id("ORD-404", payment_status="paid")
        self.assertEqual(cm.exception.order_id, "ORD-404")
        self.assertFalse(Order.objects.exists())

    def test_get_unknown_order(self):
        with self.assertRaises(OrderNotFound):
            store.get_by_order_id("nope")

    def test_lookup_failure_is_persistence_error(self):
        with patch.object(Order.objects, "get", side_effect=DatabaseError("db down")):
            with self.assertRaises(PersistenceError):
                store.get_by_order_id("ORD-1")


class OrderStatusViewTests(TestCase):
    def _get(self, order_id):
        return self.client.get(reverse("payments:order_status", kwargs={"order_id": order_id}))

    def test_pending_order(self):
        make_order("ORD-1")
        resp = self._get("ORD-1")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {
            "success": True,
            "status": "pending",
            "orderId": "ORD-1",
            "message": "",
            "processorResponse": None,
        })

    def test_settled_order(self):
        make_order(
            "ORD-2",
            payment_status="failed",
            payment_processor_id="T2",
            payment_processor_response={"transactionId": "T2", "success": False},
            response_message="DECLINED",
        )
        body = self._get("ORD-2").json()
        self.assertEqual(body["status"], "failed")
        self.assertEqual(body["message"], "DECLINED")
        self.assertEqual(body["processorResponse"], {"transactionId": "T2", "success": False})

    def test_unknown_order_is_404(self):
        resp = self._get("ORD-404")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"success": False, "message": "Order not found", "orderId": "ORD-404"})

    def test_lookup_failure_is_503(self):
        with patch("payments.services.store.get_by_order_id", side_effect=PersistenceError("db down")):
            resp = self._get("ORD-1")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["success"], False)

    def test_cors_headers(self):
        make_order("ORD-1")
        resp = self._get("ORD-1")
        self.assertEqual(resp["Access-Control-Allow-Origin"], "*")


class LinkOrderTests(TestCase):
    def setUp(self):
        self.order_id = str(uuid.uuid4())
        self.user_id = str(uuid.uuid4())
        make_order(self.order_id)

    def _post(self, order_id, payload):
        return self.client.post(
            reverse("payments:link_order", kwargs={"order_id": order_id}),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_links_order(self):
        resp = self._post(self.order_id, {"userId": self.user_id})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["success"])
        self.assertEqual(Order.objects.get(order_id=self.order_id).user_id, self.user_id)

    def test_rejects_non_uuid_ids(self):
        self.assertEqual(self._post("ORD-1", {"userId": self.user_id}).status_code, 400)
        self.assertEqual(self._post(self.order_id, {"userId": "bob"}).status_code, 400)
        self.assertEqual(self._post(self.order_id, {}).status_code, 400)
        self.assertIsNone(Order.objects.get(order_id=self.order_id).user_id)

    def test_unknown_order(self):
        resp = self._post(str(uuid.uuid4()), {"userId": self.user_id})
        self.assertEqual(resp.status_code, 404)


class UserOrdersTests(TestCase):
    def test_lists_newest_first_with_pagination(self):
        for i in range(12):
            make_order(f"ORD-{i:02d}", user_id="u-1")
        make_order("ORD-OTHER", user_id="u-2")

        url = reverse("payments:user_orders", kwargs={"user_id": "u-1"})
        first = self.client.get(url).json()
        self.assertEqual(len(first["data"]), 10)
        self.assertTrue(first["hasNext"])
        self.assertFalse(first["hasPrev"])
        self.assertEqual(first["data"][0]["orderId"], "ORD-11")
        self.assertEqual(first["data"][0]["paymentStatus"], "pending")
        self.assertEqual(first["data"][0]["totalAmount"], "49.99")

        second = self.client.get(url, {"page": "2"}).json()
        self.assertEqual([o["orderId"] for o in second["data"]], ["ORD-01", "ORD-00"])
        self.assertFalse(second["hasNext"])
        self.assertTrue(second["hasPrev"])

    def test_bad_page_falls_back_to_first(self):
        make_order("ORD-1", user_id="u-1")
        body = self.client.get(reverse("payments:user_orders", kwargs={"user_id": "u-1"}), {"page": "x"}).json()
        self.assertEqual(body["page"], 1)
        self.assertEqual(len(body["data"]), 1)
