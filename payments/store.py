"""Order Store access layer.

The rest of the payment core only talks to the ``orders`` table through the
functions in this module. Each one touches exactly one row, and writes are
single statements so concurrent requests for the same order cannot lose an
update between a read and a save.
"""
import logging

from django.db import DatabaseError, IntegrityError, transaction

from .errors import OrderNotFound, PersistenceError
from .models import Order, PaymentStatus

logger = logging.getLogger(__name__)


def insert(order: Order) -> Order:
    """Persist a new order row. Never overwrites an existing ``order_id``."""
    try:
        with transaction.atomic():
            order.save(force_insert=True)
    except IntegrityError as e:
        logger.error("Order insert rejected (duplicate?) order_id=%s: %s", order.order_id, e)
        raise PersistenceError(f"Order {order.order_id} already exists") from e
    except DatabaseError as e:
        logger.exception("Order insert failed order_id=%s", order.order_id)
        raise PersistenceError(f"Failed to create order: {e}") from e
    return order


def update_by_order_id(order_id: str, **fields) -> int:
    """Targeted ``UPDATE ... WHERE order_id = ?``; never inserts.

    Raises :class:`OrderNotFound` when no row matched.
    """
    if not fields:
        raise ValueError("update_by_order_id needs at least one field")
    try:
        with transaction.atomic():
            updated = Order.objects.filter(order_id=order_id).update(**fields)
    except DatabaseError as e:
        logger.exception("Order update failed order_id=%s", order_id)
        raise PersistenceError(f"Failed to update order: {e}") from e
    if not updated:
        raise OrderNotFound(order_id)
    return updated


def get_by_order_id(order_id: str) -> Order:
    try:
        return Order.objects.get(order_id=order_id)
    except Order.DoesNotExist:
        raise OrderNotFound(order_id)
    except DatabaseError as e:
        logger.exception("Order lookup failed order_id=%s", order_id)
        raise PersistenceError(f"Failed to fetch order: {e}") from e


def orders_for_user(user_id: str):
    return Order.objects.filter(user_id=user_id).order_by("-order_date", "-id")


def pending_orders(created_before, limit: int):
    return (
        Order.objects.filter(payment_status=PaymentStatus.PENDING, created_at__lt=created_before)
        .order_by("created_at")[:limit]
    )
