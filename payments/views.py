import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .errors import OrderNotFound, PaymentError, PaymentValidationError, PersistenceError
from .postback import ingest_postback
from .services import initiate_payment, link_order_to_user, order_status, orders_for_user

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except ValueError: return None


@csrf_exempt
@require_POST
def process_payment_view(request):
    """Storefront checkout: create the pending order and send the charge to EPN."""
    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"success": False, "message": "Missing request body"}, status=500)

    try:
        result = initiate_payment(body)
    except PaymentValidationError as e:
        logger.warning("Payment submission rejected: %s", e)
        return JsonResponse({"success": False, "message": str(e), "errors": e.errors}, status=500)
    except PaymentError as e:
        logger.error("Payment processing error (%s): %s", e.code, e)
        return JsonResponse({"success": False, "message": str(e)}, status=500)
    except Exception:
        logger.exception("Payment processing crashed")
        return JsonResponse({"success": False, "message": "Failed to process payment"}, status=500)

    return JsonResponse({"success": True, "orderId": result.order_id, "message": result.message})


@csrf_exempt
@require_POST
def payment_postback_view(request):
    """Called by EPN, never by the storefront. Body is JSON or delimited text."""
    logger.debug("EPN postback content_type=%s length=%s", request.content_type, len(request.body))
    try:
        ack = ingest_postback(request.body)
    except PaymentError as e:
        logger.error("Payment postback rejected (%s): %s", e.code, e)
        return JsonResponse(
            {"success": False, "message": "Failed to process postback", "error": str(e), "code": e.code},
            status=500,
        )
    except Exception as e:
        logger.exception("Payment postback crashed")
        return JsonResponse(
            {"success": False, "message": "Failed to process postback", "error": str(e)},
            status=500,
        )

    logger.info("Payment postback processed order_id=%s status=%s", ack.order_id, ack.status)
    return JsonResponse(ack.as_json())


@require_GET
def order_status_view(request, order_id: str):
    try:
        payload = order_status(order_id)
    except OrderNotFound:
        logger.info("Status poll for unknown order_id=%s", order_id)
        return JsonResponse({"success": False, "message": "Order not found", "orderId": order_id}, status=404)
    except PersistenceError as e:
        # transient: the client should keep polling
        return JsonResponse({"success": False, "message": str(e), "orderId": order_id}, status=503)
    return JsonResponse(payload)


@csrf_exempt
@require_POST
def link_order_view(request, order_id: str):
    body = _json_body(request) or {}
    user_id = body.get("userId") if isinstance(body, dict) else None
    if not user_id:
        return JsonResponse({"success": False, "message": "Missing required fields: userId"}, status=400)
    try:
        link_order_to_user(order_id, user_id)
    except PaymentValidationError as e:
        return JsonResponse({"success": False, "message": str(e)}, status=400)
    except OrderNotFound:
        return JsonResponse({"success": False, "message": "Order not found", "orderId": order_id}, status=404)
    except PersistenceError as e:
        return JsonResponse({"success": False, "message": str(e)}, status=500)
    return JsonResponse({"success": True, "message": "Order successfully linked to user account", "orderId": order_id})


@require_GET
def user_orders_view(request, user_id: str):
    try:
        page = int(request.GET.get("page", "1"))
    except ValueError:
        page = 1
    return JsonResponse(orders_for_user(user_id, page))
