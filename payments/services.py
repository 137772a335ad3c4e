import logging
from typing import NamedTuple

from . import store
from .errors import PaymentValidationError
from .forms import validate_submission
from .integrations import epn
from .models import Order, PaymentStatus
from .utils import amount_str, card_last4, format_address, generate_order_id, is_uuid

logger = logging.getLogger(__name__)

ORDERS_PAGE_SIZE = 10


class InitiationResult(NamedTuple):
    order_id: str
    message: str


def _line_items(items: list) -> list:
    return [
        {
            "product_id": item["id"],
            "name": item.get("name") or "Unknown Product",
            "quantity": item["quantity"],
            "price": amount_str(item["price"]),
            "total": amount_str(item["price"] * item["quantity"]),
            "options": item.get("options") or {},
        }
        for item in items
    ]


def initiate_payment(data) -> InitiationResult:
    """Create the pending order and hand the charge to EPN.

    The row is written before EPN is contacted so a postback that beats our
    own HTTP response still finds its order. Returns once EPN accepts the
    request; settlement is reported later by postback.
    """
    cleaned = validate_submission(data)
    order_id = cleaned["order_id"] or generate_order_id()
    dealer = cleaned["ffl_dealer_info"]

    # fails on missing merchant config before anything is written
    params = epn.build_transaction_params(
        order_id=order_id,
        amount=cleaned["amount"],
        card=cleaned["card"],
        billing=cleaned["billing"],
    )

    order = Order(
        order_id=order_id,
        user_id=cleaned["user_id"],
        payment_status=PaymentStatus.PENDING,
        total_amount=cleaned["amount"],
        billing_address=format_address(cleaned["billing"]),
        shipping_address=format_address(cleaned["shipping"]),
        order_items=_line_items(cleaned["items"]),
        email=cleaned["email"],
        phone_number=cleaned["phone"],
        requires_ffl=dealer is not None,
        ffl_dealer_info=dealer,
    )
    store.insert(order)
    logger.info(
        "Pending order created order_id=%s amount=%s card=****%s ffl=%s",
        order_id, amount_str(cleaned["amount"]), card_last4(cleaned["card"]["cardNumber"]), order.requires_ffl,
    )

    epn.send_transaction(params)
    return InitiationResult(order_id, "Payment processing initiated")


def order_status(order_id: str) -> dict:
    order = store.get_by_order_id(order_id)
    return {
        "success": True,
        "status": order.payment_status or PaymentStatus.PENDING,
        "orderId": order.order_id,
        "message": order.response_message,
        "processorResponse": order.payment_processor_response,
    }


def link_order_to_user(order_id: str, user_id: str) -> None:
    """Attach a guest checkout to a storefront account after sign-in."""
    if not is_uuid(order_id):
        raise PaymentValidationError("Invalid order ID format")
    if not is_uuid(user_id):
        raise PaymentValidationError("Invalid user ID format")
    store.update_by_order_id(order_id, user_id=user_id)
    logger.info("Order linked to user order_id=%s user_id=%s", order_id, user_id)


def orders_for_user(user_id: str, page: int = 1) -> dict:
    qs = store.orders_for_user(user_id)
    page = max(page, 1)
    start = (page - 1) * ORDERS_PAGE_SIZE
    end = start + ORDERS_PAGE_SIZE
    total = qs.count()
    orders = [
        {
            "orderId": o.order_id,
            "orderStatus": o.order_status,
            "paymentStatus": o.payment_status,
            "totalAmount": amount_str(o.total_amount),
            "orderDate": o.order_date.isoformat(),
            "paymentMethod": o.payment_method,
            "orderItems": o.order_items,
        }
        for o in qs[start:end]
    ]
    return {
        "data": orders,
        "page": page,
        "hasNext": end < total,
        "hasPrev": start > 0,
    }
