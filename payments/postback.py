"""EPN postback ingestion.

EPN reports the outcome of a transaction by calling us back at an unknown
later time, possibly more than once, in whichever body format the account
is configured for. One call runs, in order:

1. parse the body (JSON object or ``key=value`` pairs split by ``;`` or ``,``)
   into a single field map,
2. check the echoed restrict key against ours,
3. pull out the order id and EPN transaction id,
4. decode the response code into an outcome and a message,
5. overwrite the matching order's payment fields in one ``UPDATE``.

Step 5 always writes the full, payload-derived final state, so a redelivered
postback leaves the row exactly as the first delivery did.
"""
import hmac
import json
import logging
from typing import NamedTuple
from urllib.parse import unquote

from django.conf import settings

from . import store
from .errors import CorrelationError, PostbackAuthenticationError, PostbackFormatError
from .models import PaymentStatus

logger = logging.getLogger(__name__)

JSON = "json"
DELIMITED = "delimited"
UNRECOGNIZED = "unrecognized"

RESTRICT_KEY_FIELD = "Postback.RestrictKey"
ORDER_ID_FIELDS = ("Postback.OrderID", "OrderID")
TRANSACTION_ID_FIELD = "XactID"


class ParsedPostback(NamedTuple):
    format: str
    fields: dict


class PostbackAck(NamedTuple):
    order_id: str
    status: str
    message: str
    transaction_id: str
    auth_code: str | None

    def as_json(self) -> dict:
        return {
            "success": True,
            "status": self.status,
            "message": self.message,
            "transactionId": self.transaction_id,
            "authCode": self.auth_code,
            "orderId": self.order_id,
        }


def _unwrap(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value


def _parse_json(body: str) -> dict | None:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    # nested objects are not part of the EPN field set
    return {
        str(k): v if isinstance(v, str) else str(v)
        for k, v in data.items()
        if v is not None and not isinstance(v, (dict, list))
    }


def _parse_delimited(body: str) -> dict | None:
    sep = ";" if ";" in body else ","
    pairs = []
    for segment in body.split(sep):
        if not segment.strip():
            continue
        key, eq, value = segment.partition("=")
        if not eq:
            # comma mode: response text may itself contain commas
            if sep != "," or not pairs:
                return None
            pairs[-1][1] += sep + segment
            continue
        key = unquote(key.strip())
        if not key:
            return None
        pairs.append([key, value])
    return {key: _unwrap(unquote(value.strip())) for key, value in pairs} or None


def parse_postback(body) -> ParsedPostback:
    """Tag the body as JSON, delimited or unrecognized; never guesses further."""
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return ParsedPostback(UNRECOGNIZED, {})
    body = (body or "").strip()
    if not body:
        return ParsedPostback(UNRECOGNIZED, {})

    fields = _parse_json(body)
    if fields is not None:
        return ParsedPostback(JSON, fields)
    fields = _parse_delimited(body)
    if fields is not None:
        return ParsedPostback(DELIMITED, fields)
    return ParsedPostback(UNRECOGNIZED, {})


def decode_response(value) -> tuple[str, str]:
    """Split an EPN response code into ``(outcome, message)``.

    The first character is the verdict (``Y`` approved, ``N`` declined) and
    the rest is the human readable text. Any other leading character leaves
    the order pending.
    """
    text = _unwrap(str(value or "").strip())
    flag = text[:1]
    if flag == "Y":
        outcome = PaymentStatus.PAID
    elif flag == "N":
        outcome = PaymentStatus.FAILED
    else:
        outcome = PaymentStatus.PENDING
    return outcome.value, text[1:]


def authenticate(fields: dict) -> None:
    supplied = fields.get(RESTRICT_KEY_FIELD)
    if not supplied:
        return
    expected = getattr(settings, "EPN_RESTRICT_KEY", "") or ""
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise PostbackAuthenticationError("Invalid RestrictKey")


def ingest_postback(body) -> PostbackAck:
    parsed = parse_postback(body)
    if parsed.format == UNRECOGNIZED:
        raise PostbackFormatError("Invalid postback data format")
    fields = parsed.fields

    try:
        authenticate(fields)
    except PostbackAuthenticationError:
        logger.warning("Postback rejected: restrict key mismatch (order_id=%s)",
                       fields.get("Postback.OrderID") or fields.get("OrderID"))
        raise

    order_id = next((fields[k] for k in ORDER_ID_FIELDS if fields.get(k)), "")
    transaction_id = fields.get(TRANSACTION_ID_FIELD, "")
    missing = [name for name, val in (("OrderID", order_id), ("XactID", transaction_id)) if not val]
    if missing:
        raise CorrelationError(f"Missing required fields: {', '.join(missing)}")

    full_response = _unwrap(fields.get("FullResponse", "").strip())
    outcome, resp_text = decode_response(full_response)
    resp_text = resp_text or "Unknown response"
    # secondary field carries the same message in its own encoding
    message = decode_response(fields["Response"])[1] if fields.get("Response") else resp_text

    auth_code = fields.get("AuthCode")
    capture = {
        "success": outcome == PaymentStatus.PAID,
        "outcome": outcome,
        "respText": resp_text,
        "fullResponse": full_response,
        "authCode": auth_code,
        "avsResponse": fields.get("AVSResp"),
        "cvv2Response": fields.get("CVV2Resp"),
        "transactionId": transaction_id,
        "format": parsed.format,
        "rawResponse": {k: v for k, v in fields.items() if k != RESTRICT_KEY_FIELD},
    }

    logger.info("Postback received order_id=%s xact=%s outcome=%s format=%s",
                order_id, transaction_id, outcome, parsed.format)
    store.update_by_order_id(
        order_id,
        payment_status=outcome,
        payment_processor_id=transaction_id,
        payment_processor_response=capture,
        response_message=message[:255],
    )

    if not message:
        message = "Payment approved" if outcome == PaymentStatus.PAID else "Payment declined"
    return PostbackAck(order_id, outcome, message, transaction_id, auth_code)
