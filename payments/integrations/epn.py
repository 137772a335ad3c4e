"""eProcessingNetwork (EPN) transparent database engine client.

Only builds and sends the authorization request. EPN answers the HTTP call
right away; whether the card was approved arrives later as a postback, so
this module never interprets the business outcome.
"""
import logging
import ssl
from typing import NamedTuple

import requests
from django.conf import settings
from requests import RequestException
from requests.adapters import HTTPAdapter

from ..errors import GatewayError
from ..utils import amount_str, strip_whitespace

logger = logging.getLogger(__name__)


class EpnError(GatewayError): pass


class GatewayAcceptance(NamedTuple):
    status_code: int
    body: str


class TLS12Adapter(HTTPAdapter):
    """HTTPS adapter refusing anything older than TLS 1.2."""

    def _context(self):
        ctx = ssl.create_default_context()
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        return ctx

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._context()
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._context()
        return super().proxy_manager_for(*args, **kwargs)


def _session() -> requests.Session:
    s = requests.Session()
    s.mount("https://", TLS12Adapter())
    return s


def _headers() -> dict:
    return {
        "Content-Type": "application/x-www-form-urlencoded",
        "Accept": "*/*",
        "User-Agent": getattr(settings, "EPN_USER_AGENT", "Carnimore/1.0"),
    }


def build_transaction_params(*, order_id, amount, card: dict, billing: dict) -> dict:
    """Form fields for a single ``Sale`` with postback delivery.

    The restrict key and order id are echoed back by EPN in the postback so
    the receiving endpoint can authenticate and correlate it.
    """
    if not settings.EPN_ACCOUNT_NUMBER: raise EpnError("Missing EPN_ACCOUNT_NUMBER")
    if not settings.EPN_RESTRICT_KEY: raise EpnError("Missing EPN restrict key (EPN_X_TRAN)")
    total = amount_str(amount)
    return {
        "ePNAccount": settings.EPN_ACCOUNT_NUMBER,
        "RestrictKey": settings.EPN_RESTRICT_KEY,
        "RequestType": "transaction",
        "TranType": "Sale",
        "IndustryType": "E",
        "Total": total,
        "Address": (billing.get("address") or "").strip(),
        "City": (billing.get("city") or "").strip(),
        "State": (billing.get("state") or "").strip(),
        "Zip": (billing.get("zipCode") or "").strip(),
        "CardNo": strip_whitespace(card["cardNumber"]),
        "ExpMonth": str(card["expiryMonth"]).zfill(2),
        "ExpYear": str(card["expiryYear"])[-2:],
        "CVV2Type": "1",
        "CVV2": card["cvv"],
        "Postback.OrderID": order_id,
        "Postback.Description": f"Order {order_id}",
        "Postback.Total": total,
        "Postback.RestrictKey": settings.EPN_RESTRICT_KEY,
        "PostbackID": order_id,
        "COMBINE_PB_RESPONSE": "1",
        "NOMAIL_CARDHOLDER": "1",
        "NOMAIL_MERCHANT": "1",
    }


def send_transaction(params: dict) -> GatewayAcceptance:
    """POST the transaction; success means EPN accepted it for processing."""
    url = settings.EPN_API_URL
    order_id = params.get("Postback.OrderID", "")
    session = _session()
    try:
        resp = session.post(url, data=params, headers=_headers(), timeout=settings.EPN_TIMEOUT)
    except RequestException as e:
        logger.error("EPN request failed order_id=%s: %s", order_id, e)
        raise EpnError(f"Gateway request failed: {e}")
    finally:
        session.close()
    if not resp.ok:
        logger.error("EPN rejected request order_id=%s status=%s text=%s", order_id, resp.status_code, resp.text[:500])
        raise EpnError(f"Failed to send payment request to processor (HTTP {resp.status_code})")
    logger.info("EPN accepted request order_id=%s status=%s", order_id, resp.status_code)
    return GatewayAcceptance(resp.status_code, resp.text)
