import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse

from .errors import PaymentValidationError
from .forms import validate_submission
from .models import Order


class FakeResponse:
    def __init__(self, status_code=200, text="accepted"):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400


def submission(**overrides):
    data = {
        "orderId": "ORD-1",
        "cardNumber": "4111 1111 1111 1111",
        "expiryMonth": "7",
        "expiryYear": "2099",
        "cvv": "123",
        "nameOnCard": "Pat Buyer",
        "amount": 49.99,
        "billingAddress": {"address": "1 Main St", "city": "Phoenix", "state": "AZ", "zipCode": "85001"},
        "shippingAddress": {"address": "1 Main St", "city": "Phoenix", "state": "AZ", "zipCode": "85001"},
        "items": [{"id": "p-1", "name": "Camo Hat", "quantity": 2, "price": 25}],
        "email": "buyer@example.com",
        "phone": "6025550100",
    }
    data.update(overrides)
    return data


class ValidateSubmissionTests(TestCase):
    def assertInvalid(self, data, fragment):
        with self.assertRaises(PaymentValidationError) as cm:
            validate_submission(data)
        self.assertIn(fragment, str(cm.exception))

    def test_valid_submission_is_normalised(self):
        cleaned = validate_submission(submission(items=[{"id": "p-1", "quantity": 1, "price": "49.99"}]))
        self.assertEqual(cleaned["order_id"], "ORD-1")
        self.assertEqual(cleaned["amount"], Decimal("49.99"))
        self.assertEqual(cleaned["card"]["cardNumber"], "4111111111111111")
        self.assertEqual(cleaned["card"]["expiryMonth"], "07")
        self.assertIsNone(cleaned["ffl_dealer_info"])

    def test_billing_fields_required(self):
        billing = {"address": "1 Main St", "city": "Phoenix", "state": "AZ"}
        self.assertInvalid(submission(billingAddress=billing), "Invalid billing address")
        self.assertInvalid(submission(billingAddress=None), "Invalid billing address")

    def test_card_checks(self):
        self.assertInvalid(submission(cardNumber="4111"), "Invalid card number")
        self.assertInvalid(submission(cvv="12"), "Invalid CVV")
        self.assertInvalid(submission(expiryMonth="13"), "Invalid expiry month")
        self.assertInvalid(submission(expiryYear="2020"), "Card has expired")

    def test_shipping_required_without_dealer(self):
        self.assertInvalid(submission(shippingAddress=None), "Shipping address is required")
        ship = {"address": "1 Main St", "city": "Phoenix", "state": "Arizona", "zipCode": "85001"}
        self.assertInvalid(submission(shippingAddress=ship), "Valid shipping state")

    def test_dealer_delivery_skips_shipping(self):
        dealer = {"business_name": "Desert Arms", "premise_zip_code": "85001"}
        cleaned = validate_submission(submission(shippingAddress=None, fflDealerInfo=dealer))
        self.assertIsNone(cleaned["shipping"])
        self.assertEqual(cleaned["ffl_dealer_info"], dealer)

    def test_amount_and_items(self):
        self.assertInvalid(submission(amount=0), "amount")
        self.assertInvalid(submission(items=[]), "at least one item")
        self.assertInvalid(submission(items=[{"id": "p-1", "quantity": 0, "price": 1}]), "Invalid item #1")

    def test_order_id_charset(self):
        self.assertInvalid(submission(orderId="ORD 1;DROP"), "orderId")

    def test_errors_name_only_the_failing_part(self):
        with self.assertRaises(PaymentValidationError) as cm:
            validate_submission(submission(cvv="12", items=[{"id": "p-1", "quantity": 0, "price": 1}]))
        self.assertEqual(list(cm.exception.errors), ["card"])
        self.assertEqual(cm.exception.errors["card"]["cvv"][0]["message"], "Invalid CVV")

    def test_card_number_whitespace_is_ignored(self):
        cleaned = validate_submission(submission(cardNumber=" 4111\t1111 1111 1111 "))
        self.assertEqual(cleaned["card"]["cardNumber"], "4111111111111111")
        self.assertInvalid(submission(cardNumber="4111-1111-1111-1111"), "Invalid card number")



@override_settings(EPN_ACCOUNT_NUMBER="080880", EPN_RESTRICT_KEY="test-restrict-key")
class ProcessPaymentViewTests(TestCase):
    def _post(self, data):
        return self.client.post(reverse("payments:process_payment"), data=json.dumps(data), content_type="application/json")

    def _session(self, response=None, side_effect=None):
        session = MagicMock()
        if side_effect is not None:
            session.post.side_effect = side_effect
        else:
            session.post.return_value = response or FakeResponse()
        return session

    def test_pending_order_exists_before_gateway_call(self):
        seen = {}

        def fake_post(url, data, headers, timeout):
            order = Order.objects.get(order_id="ORD-1")
            seen["status"] = order.payment_status
            seen["params"] = data
            return FakeResponse()

        session = self._session(side_effect=fake_post)
        with patch("payments.integrations.epn._session", return_value=session):
            resp = self._post(submission())

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "orderId": "ORD-1", "message": "Payment processing initiated"})
        self.assertEqual(seen["status"], "pending")
        self.assertEqual(seen["params"]["Total"], "49.99")
        self.assertEqual(seen["params"]["Postback.OrderID"], "ORD-1")
        self.assertEqual(seen["params"]["Postback.RestrictKey"], "test-restrict-key")
        session.close.assert_called_once()

    def test_order_row_contents(self):
        with patch("payments.integrations.epn._session", return_value=self._session()):
            self._post(submission(userId="u-1"))
        order = Order.objects.get(order_id="ORD-1")
        self.assertEqual(order.payment_status, "pending")
        self.assertEqual(order.total_amount, Decimal("49.99"))
        self.assertEqual(order.billing_address, "1 Main St, Phoenix, AZ, 85001")
        self.assertEqual(order.shipping_address, "1 Main St, Phoenix, AZ, 85001")
        self.assertEqual(order.user_id, "u-1")
        self.assertFalse(order.requires_ffl)
        self.assertIsNone(order.payment_processor_id)
        self.assertEqual(order.order_items, [{
            "product_id": "p-1",
            "name": "Camo Hat",
            "quantity": 2,
            "price": "25.00",
            "total": "50.00",
            "options": {},
        }])

    def test_generated_order_id_when_missing(self):
        data = submission()
        del data["orderId"]
        with patch("payments.integrations.epn._session", return_value=self._session()):
            resp = self._post(data)
        order_id = resp.json()["orderId"]
        self.assertEqual(len(order_id), 36)
        self.assertTrue(Order.objects.filter(order_id=order_id).exists())

    def test_dealer_order(self):
        dealer = {"business_name": "Desert Arms", "premise_zip_code": "85001"}
        with patch("payments.integrations.epn._session", return_value=self._session()):
            resp = self._post(submission(shippingAddress=None, fflDealerInfo=dealer))
        self.assertEqual(resp.status_code, 200)
        order = Order.objects.get(order_id="ORD-1")
        self.assertTrue(order.requires_ffl)
        self.assertIsNone(order.shipping_address)
        self.assertEqual(order.ffl_dealer_info, dealer)

    def test_validation_error_touches_nothing(self):
        session = self._session()
        with patch("payments.integrations.epn._session", return_value=session):
            resp = self._post(submission(cvv=""))
        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.json()["success"])
        self.assertIn("Invalid payment information", resp.json()["message"])
        self.assertFalse(Order.objects.exists())
        session.post.assert_not_called()

    def test_gateway_rejection_leaves_order_pending(self):
        session = self._session(FakeResponse(status_code=503, text="down"))
        with patch("payments.integrations.epn._session", return_value=session):
            with self.assertLogs("payments.integrations.epn", level="ERROR") as cm:
                resp = self._post(submission())
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["success"], False)
        self.assertIn("Failed to send payment request to processor", resp.json()["message"])
        self.assertEqual(Order.objects.get(order_id="ORD-1").payment_status, "pending")
        self.assertIn("ORD-1", cm.output[0])

    def test_gateway_unreachable(self):
        session = self._session(side_effect=requests.ConnectionError("boom"))
        with patch("payments.integrations.epn._session", return_value=session):
            resp = self._post(submission())
        self.assertEqual(resp.status_code, 500)
        self.assertIn("Gateway request failed", resp.json()["message"])
        self.assertTrue(Order.objects.filter(order_id="ORD-1", payment_status="pending").exists())

    def test_duplicate_order_id_skips_gateway(self):
        Order.objects.create(
            order_id="ORD-1", total_amount=Decimal("1.00"), billing_address="x",
            email="a@example.com", phone_number="1",
        )
        session = self._session()
        with patch("payments.integrations.epn._session", return_value=session):
            resp = self._post(submission())
        self.assertEqual(resp.status_code, 500)
        self.assertIn("already exists", resp.json()["message"])
        session.post.assert_not_called()
        self.assertEqual(Order.objects.get(order_id="ORD-1").total_amount, Decimal("1.00"))

    @override_settings(EPN_ACCOUNT_NUMBER="")
    def test_missing_merchant_config_writes_nothing(self):
        resp = self._post(submission())
        self.assertEqual(resp.status_code, 500)
        self.assertIn("EPN_ACCOUNT_NUMBER", resp.json()["message"])
        self.assertFalse(Order.objects.exists())

    def test_malformed_json_body(self):
        resp = self.client.post(reverse("payments:process_payment"), data="{oops", content_type="application/json")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "message": "Missing request body"})

    def test_database_failure_on_insert_skips_gateway(self):
        session = self._session()
        with patch("payments.integrations.epn._session", return_value=session), \
                patch.object(Order, "save", side_effect=DatabaseError("down")):
            resp = self._post(submission())
        self.assertEqual(resp.status_code, 500)
        self.assertFalse(resp.json()["success"])
        self.assertIn("Failed to create order", resp.json()["message"])
        session.post.assert_not_called()
        self.assertFalse(Order.objects.exists())


@override_settings(EPN_ACCOUNT_NUMBER="080880", EPN_RESTRICT_KEY="test-restrict-key")
class CheckoutFlowTests(TestCase):
    def test_checkout_postback_then_status(self):
        session = MagicMock()
        session.post.return_value = FakeResponse()
        with patch("payments.integrations.epn._session", return_value=session):
            resp = self.client.post(
                reverse("payments:process_payment"), data=json.dumps(submission()), content_type="application/json",
            )
        self.assertEqual(resp.status_code, 200)

        status_url = reverse("payments:order_status", kwargs={"order_id": "ORD-1"})
        self.assertEqual(self.client.get(status_url).json()["status"], "pending")

        # EPN echoes back what it was sent
        sent = session.post.call_args.kwargs["data"]
        postback = json.dumps({
            "FullResponse": "YAPPROVED",
            "XactID": "T1",
            "AuthCode": "A1B2",
            "Postback.OrderID": sent["Postback.OrderID"],
            "Postback.RestrictKey": sent["Postback.RestrictKey"],
        })
        ack = self.client.post(reverse("payments:payment_postback"), data=postback, content_type="application/json")
        self.assertEqual(ack.status_code, 200)
        self.assertEqual(ack.json()["status"], "paid")

        status = self.client.get(status_url).json()
        self.assertEqual(status["status"], "paid")
        self.assertEqual(status["message"], "APPROVED")
        self.assertEqual(status["processorResponse"]["transactionId"], "T1")


class ProcessPaymentBodyTests(TestCase):
    def test_undecodable_body(self):
        resp = self.client.post(reverse("payments:process_payment"), data=b"\xff\xfe", content_type="application/json")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"success": False, "message": "Missing request body"})
